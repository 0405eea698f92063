# flake8: noqa
# scripts/create_admin.py

import asyncio
import typer
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.database import get_async_session_context
from app.domains.usr import crud as usr_crud
from app.domains.usr import schemas as usr_schemas
from app.domains.usr.models import UserRole

cli = typer.Typer()


async def create_admin_user(
    db: AsyncSession,
    user_in: usr_schemas.UserCreate
) -> bool:
    """
    데이터베이스에 관리자 사용자를 생성하는 비동기 함수
    """
    if user_in.email:
        db_user_by_email = await usr_crud.user.get_by_email(db, email=user_in.email)
        if db_user_by_email:
            print(f"오류: 이미 존재하는 이메일입니다: {user_in.email}")
            return False

    db_user_by_username = await usr_crud.user.get_by_username(db, username=user_in.username)
    if db_user_by_username:
        print(f"오류: 이미 존재하는 사용자명입니다: {user_in.username}")
        return False

    await usr_crud.user.create(db, obj_in=user_in)
    print(f"관리자 계정이 성공적으로 생성되었습니다: {user_in.username}")
    return True


@cli.command()
def main(
    username: str = typer.Option(
        ..., '--username', '-u',
        prompt="관리자 사용자명(ID)을 입력하세요",
        help="로그인 시 사용할 사용자명(ID)입니다."
    ),
    password: str = typer.Option(
        ..., '--password', '-p',
        prompt="관리자 비밀번호를 입력하세요",
        hide_input=True,
        confirmation_prompt=True,
        help="생성할 관리자 계정의 비밀번호입니다. (최소 8자 이상)"
    ),
    email: str = typer.Option(
        "", '--email', '-e',
        help="관리자 계정의 이메일 주소입니다. (선택)"
    ),
    full_name: str = typer.Option(
        "Admin", '--name', '-n',
        help="관리자의 이름입니다."
    ),
    inventory_manager: bool = typer.Option(
        False, '--inventory-manager',
        help="관리자 대신 재고 관리자(INVENTORY_MANAGER) 역할로 생성합니다."
    ),
):
    """
    재고 원장 API 를 위한 관리자(또는 재고 관리자) 계정을 생성합니다.
    """
    if len(password) < 8:
        print("오류: 비밀번호는 최소 8자 이상이어야 합니다.")
        raise typer.Abort()

    print("계정 생성을 시작합니다...")

    user_data = usr_schemas.UserCreate(
        email=email or None,
        username=username,
        password=password,
        full_name=full_name,
        role=UserRole.INVENTORY_MANAGER if inventory_manager else UserRole.ADMIN,
    )

    async def run_creation() -> bool:
        async with get_async_session_context() as db:
            return await create_admin_user(db=db, user_in=user_data)

    if not asyncio.run(run_creation()):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    cli()
