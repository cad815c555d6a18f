from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    APP_NAME: str = "Field Service CRM API"

    # REQUIRED in .env
    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    DATABASE_URL: str = "sqlite:///./crm.db"

    LOG_LEVEL: str = "INFO"
    SEED_DEMO_USERS: bool = True

    # Activity feed
    ACTIVITY_FEED_POLL_SECONDS: int = 15
    ACTIVITY_FEED_DEFAULT_LIMIT: int = 50
    JOB_ACTIVITY_LIMIT: int = 20

    # Domain rules
    COMMENT_EDIT_WINDOW_MINUTES: int = 5
    HOT_JOB_WINDOW_HOURS: int = 24
    HOT_JOB_THRESHOLD: int = 3

    QUERY_CACHE_ENABLED: bool = True
    QUERY_CACHE_MAX_ENTRIES: int = 500

    class Config:
        env_file = ".env"

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        if not v or len(v.strip()) < 32:
            raise ValueError("JWT_SECRET must be set and at least 32 characters.")
        if "CHANGE_ME" in v.upper():
            raise ValueError("JWT_SECRET looks like a placeholder. Set a real secret.")
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()


settings = Settings()
