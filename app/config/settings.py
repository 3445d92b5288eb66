from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "Push Admin Portal"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:3000"
    LOG_LEVEL: str = "info"

    # Database
    DATABASE_URL: str = "sqlite:///./push_admin.db"
    AUTO_CREATE_TABLES: bool = True

    # Authentication & Security
    JWT_SECRET_KEY: str = "<your-jwt-secret-key>"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # OneSignal
    ONESIGNAL_APP_ID: str = ""
    ONESIGNAL_REST_API_KEY: str = ""
    ONESIGNAL_API_BASE: str = "https://api.onesignal.com"
    ONESIGNAL_TIMEOUT_SECONDS: float = 30.0
    ONESIGNAL_PAGE_LIMIT: int = 300
    ONESIGNAL_SYNC_MAX_PAGES: int = 10
    ONESIGNAL_PAGE_DELAY_SECONDS: float = 0.1

    # Subscribers
    DEFAULT_GROUP_NAME: str = "All Subscribers"

    # Seed accounts
    SEED_ADMIN_EMAIL: str = "admin@example.com"
    SEED_ADMIN_PASSWORD: str = "admin123"
    SEED_SENDER_EMAIL: str = "sender@example.com"
    SEED_SENDER_PASSWORD: str = "sender123"

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
