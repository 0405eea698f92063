# app/core/config.py

from typing import Any
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import os

# 프로젝트의 루트 디렉토리 경로를 계산합니다.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    애플리케이션의 모든 설정을 정의하는 Pydantic BaseSettings 모델입니다.
    환경 변수 및 .env 파일에서 값을 자동으로 로드합니다.
    """

    # --- Pydantic Settings 설정 ---
    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),  # 프로젝트 루트의 .env 파일을 명시적으로 지정
        env_file_encoding='utf-8',           # .env 파일 인코딩
        extra='ignore',                      # .env 파일에 정의되었지만 모델에 없는 변수는 무시
        case_sensitive=True                  # 환경 변수 이름 대소문자 구분
    )

    # --- 애플리케이션 기본 설정 ---
    APP_NAME: str = "Warehouse Ledger API"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Warehouse inventory ledger, transfer and physical count reconciliation API"
    # 애플리케이션 환경 (예: "development", "production", "testing")
    APP_ENV: str = Field("development", description="Application environment (e.g., development, production, testing)")
    # 디버그 모드 활성화 여부
    DEBUG_MODE: bool = Field(False, description="Enable debug mode for detailed logging and error messages")
    LOG_LEVEL: str = Field("INFO", description="Root logging level (DEBUG, INFO, WARNING, ...)")

    # --- 데이터베이스 설정 ---
    DATABASE_URL: SecretStr = Field(..., description="Database connection URL (postgresql+asyncpg://...)")
    # 개발용: 애플리케이션 시작 시 테이블 생성 (운영은 Alembic 사용)
    AUTO_CREATE_TABLES: bool = Field(False, description="Create tables on startup (development only)")

    # --- JWT (JSON Web Token) 설정 ---
    SECRET_KEY: SecretStr = Field(..., description="Secret key for JWT token signing. Keep this highly secure!")
    ALGORITHM: str = Field("HS256", description="Algorithm used for JWT signing (e.g., HS256)")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30, description="Access token expiration time in minutes")

    # --- 거래(transaction) 처리 설정 ---
    # 참조번호가 UNIQUE 제약에 충돌했을 때 재발급 시도 횟수
    REFERENCE_NUMBER_MAX_RETRIES: int = Field(5, ge=1, description="Retries when a minted reference number collides")
    # 이동(Transfer) 입고 일자 기본값: 출고일 + N 영업일
    TRANSFER_LEAD_BUSINESS_DAYS: int = Field(2, ge=0, description="Default business-day lead time of a transfer inbound")
    # True 이면 이동 입고 참조번호가 출고와 같은 숫자 접미사를 공유합니다 (레거시 동작).
    TRANSFER_MIRROR_SHARES_SUFFIX: bool = Field(False, description="Reuse the outbound numeric suffix for the inbound mirror")
    # True: 출고+입고를 하나의 트랜잭션으로 커밋 / False: 입고 실패 시 출고를 보상 삭제
    ATOMIC_TRANSFERS: bool = Field(True, description="Commit a transfer and its inbound mirror in one unit of work")

    # Post-initialization validation (Pydantic v2 BaseSettings)
    def model_post_init(self, __context: Any) -> None:  # noqa: ANN001
        # 운영 환경에서는 테이블 자동 생성을 허용하지 않습니다.
        if self.APP_ENV == "production" and self.AUTO_CREATE_TABLES:
            self.AUTO_CREATE_TABLES = False

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.get_secret_value().startswith("sqlite")


settings = Settings()
