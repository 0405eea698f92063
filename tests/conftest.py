# tests/conftest.py

import os
from typing import AsyncGenerator, Callable, Awaitable
from contextlib import asynccontextmanager

# app 설정이 임포트 시점에 로드되므로 그 전에 테스트용 기본값을 지정합니다.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-warehouse-ledger")
os.environ.setdefault("APP_ENV", "testing")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# app.main을 임포트하여 FastAPI 앱 인스턴스에 접근합니다.
from app.main import app as main_app
from app.core import dependencies as deps
from app.core.database import get_session
from app.core.security import get_password_hash

# --- 모든 모델 임포트 ---
# SQLModel.metadata.create_all()이 모든 테이블을 인식하려면 모델이 한 번 이상 임포트되어야 합니다.
from app.domains.usr import models as usr_models
from app.domains.inv import models as inv_models  # noqa: F401


# --- 테스트용 데이터베이스 설정 ---
# 기본은 테스트마다 새로 만드는 인메모리 SQLite 입니다.
# TEST_DATABASE_URL 로 PostgreSQL 테스트 DB 를 지정할 수 있습니다.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _create_test_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        return create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,  # 인메모리 DB 를 하나의 연결로 공유
        )
    return create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)


# --- 데이터베이스 픽스처 ---
@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """
    각 테스트 함수마다 모든 테이블을 새로 생성하고, 종료 시 삭제합니다.
    """
    engine = _create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    테스트 함수 하나에서 사용하는 비동기 데이터베이스 세션을 제공합니다.
    API 요청도 같은 세션을 사용합니다.
    """
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with TestingSessionLocal() as session:
        yield session


# --- 역할별 사용자 픽스처 ---
@pytest.fixture(scope="function")
def user_factory(db_session: AsyncSession) -> Callable[..., Awaitable[usr_models.User]]:
    """
    역할과 속성을 지정하여 테스트 사용자를 생성하는 팩토리 함수를 반환합니다.
    """
    async def _create_user(
        username: str,
        password: str,
        role: usr_models.UserRole,
        is_active: bool = True,
        **kwargs,
    ) -> usr_models.User:
        user = usr_models.User(
            username=username,
            password_hash=get_password_hash(password),
            email=f"{username}@example.com",
            role=role,
            is_active=is_active,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _create_user


@pytest_asyncio.fixture(scope="function")
async def test_admin_user(user_factory: Callable) -> usr_models.User:
    """관리자(ADMIN) 사용자를 생성합니다."""
    return await user_factory("sysadm", "sysadmpass123", role=usr_models.UserRole.ADMIN, full_name="Admin Test User")


@pytest_asyncio.fixture(scope="function")
async def test_inventory_manager(user_factory: Callable) -> usr_models.User:
    """재고 관리자(INVENTORY_MANAGER)를 생성합니다."""
    return await user_factory(
        "invmgr", "invpass123", role=usr_models.UserRole.INVENTORY_MANAGER, full_name="Inventory Manager"
    )


@pytest_asyncio.fixture(scope="function")
async def test_user(user_factory: Callable) -> usr_models.User:
    """일반 사용자(GENERAL_USER)를 생성합니다. 원장은 조회만 가능합니다."""
    return await user_factory("testuser", "testpass123", role=usr_models.UserRole.GENERAL_USER)


# --- 역할별 인증 클라이언트 픽스처 ---
# 로그인 API(/api/v1/usr/auth/token)를 실제로 호출해 토큰을 받은 AsyncClient 를 만듭니다.
# 세션 의존성은 테스트 세션으로 교체합니다.
@pytest.fixture(scope="function")
def authorized_client_factory(db_session: AsyncSession):
    """
    특정 사용자로 로그인된 AsyncClient를 생성하는 비동기 컨텍스트 매니저 팩토리를 반환합니다.
    """
    @asynccontextmanager
    async def _create_client_context(user: usr_models.User, password: str) -> AsyncGenerator[AsyncClient, None]:
        async def override_get_session():
            yield db_session

        original_overrides = main_app.dependency_overrides.copy()
        try:
            main_app.dependency_overrides.update({
                get_session: override_get_session,
                deps.get_db_session: override_get_session,
            })

            transport = ASGITransport(app=main_app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                login_data = {"username": user.username, "password": password}
                res = await client.post("/api/v1/usr/auth/token", data=login_data)
                if res.status_code != 200:
                    pytest.fail(f"Login failed for {user.username}: {res.text}")

                token = res.json()["access_token"]
                client.headers["Authorization"] = f"Bearer {token}"
                yield client
        finally:
            main_app.dependency_overrides.clear()
            main_app.dependency_overrides.update(original_overrides)

    return _create_client_context


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """인증 없이 사용하는 클라이언트 (루트, 헬스 체크 등)"""
    async def override_get_session():
        yield db_session

    main_app.dependency_overrides[get_session] = override_get_session
    main_app.dependency_overrides[deps.get_db_session] = override_get_session
    transport = ASGITransport(app=main_app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client
    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def admin_client(authorized_client_factory, test_admin_user: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    """관리자로 인증된 클라이언트를 반환합니다."""
    async with authorized_client_factory(test_admin_user, "sysadmpass123") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def inventory_manager_client(
    authorized_client_factory, test_inventory_manager: usr_models.User
) -> AsyncGenerator[AsyncClient, None]:
    """재고 관리자로 인증된 클라이언트를 반환합니다."""
    async with authorized_client_factory(test_inventory_manager, "invpass123") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def authorized_client(authorized_client_factory, test_user: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    """일반 사용자로 인증된 클라이언트를 반환합니다."""
    async with authorized_client_factory(test_user, "testpass123") as client:
        yield client
