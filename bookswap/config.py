from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="bookswap/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "BookSwap Exchange API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False  # True 면 sqlalchemy.engine 로그로 SQL 출력
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "bookswap"

    # 직접 지정하면 POSTGRES_* 보다 우선 (테스트에서는 sqlite 사용)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Redis (valuation cache)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_ENABLED: bool = True

    # AWS / notifications
    AWS_REGION: str = "ap-northeast-2"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    NOTIFICATION_QUEUE_URL: Optional[str] = None
    NOTIFICATIONS_ENABLED: bool = True

    # Business Rules
    VALUATION_BASE_POINTS: int = 50  # 가치 산정 기본 포인트
    VALUATION_CACHE_TTL_SECONDS: int = 60
    LISTING_BONUS_POINTS: int = 10  # 도서 등록 보상
    SIBLING_REFUND_MAX_ATTEMPTS: int = 3  # 형제 요청 환불 재시도 횟수
    SIBLING_REFUND_BACKOFF_SECONDS: float = 0.1  # 지수 백오프 배수
    SIBLING_REFUND_BACKOFF_MAX_SECONDS: float = 2.0

    # Pagination
    TRANSACTION_HISTORY_DEFAULT_LIMIT: int = 20
    TRANSACTION_HISTORY_MAX_LIMIT: int = 50


settings = Settings()
