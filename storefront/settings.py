# settings.py
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Storefront API"
    PROJECT_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    DOCS_URL: str = "/api-docs"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    # Security
    JWT_SECRET: str = "super-secret-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60 * 24  # 24h
    # When enabled, every mutating endpoint except registration needs an admin bearer token.
    PROTECT_WRITES: bool = False
    # Seeded on startup when both are set
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"  # default local SQLite
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Listing
    PAGE_SIZE: int = 12

    # CORS (comma separated)
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        case_sensitive = True


# ✅ Instantiate settings globally
settings = Settings()
