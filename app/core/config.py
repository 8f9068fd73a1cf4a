from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./safha.db"
    auto_create_db: bool = False

    # Identity provider hands us the authenticated user id in this header
    identity_header: str = "X-User-Id"

    # Outbound notifications (optional)
    notify_webhook_url: Optional[str] = None
    notify_timeout_seconds: float = 5.0

    # Application
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]
    catalogue_page_size: int = 20
    admin_page_size: int = 50

    # Environment
    environment: str = "development"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
