from pydantic_settings import BaseSettings
from pydantic import validator


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Edge Hub"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/hub.db"
    DATABASE_ECHO: bool = False

    # Cloud settings
    CLOUD_API_URL: str = "http://localhost:3001"
    HUB_ID: str = "HUB-DEFAULT"

    # Sync schedule
    SYNC_ENABLED: bool = True
    SYNC_INTERVAL_SECONDS: int = 180
    STARTUP_RESYNC_DELAY_SECONDS: float = 5.0

    # Sync tuning
    SYNC_FETCH_TIMEOUT_SECONDS: float = 45.0
    ANALYTICS_UPLOAD_TIMEOUT_SECONDS: float = 30.0
    CONTENT_BATCH_SIZE: int = 10
    SYNC_HISTORY_SIZE: int = 50
    SYNC_CONFLICT_WINDOW_HOURS: int = 24
    CONTENT_CONFLICT_WINDOW_HOURS: int = 48

    # What happens to devices the cloud no longer lists: "deactivate" or "delete"
    DEVICE_REMOVAL_POLICY: str = "deactivate"

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        return v

    @validator("CLOUD_API_URL")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @validator("DEVICE_REMOVAL_POLICY")
    def validate_removal_policy(cls, v):
        if v not in ("deactivate", "delete"):
            raise ValueError("DEVICE_REMOVAL_POLICY must be 'deactivate' or 'delete'")
        return v

    @validator("CONTENT_BATCH_SIZE", "SYNC_HISTORY_SIZE")
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
