from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "CPS API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"

    # Database
    POSTGRES_USER: str = "cps"
    POSTGRES_PASSWORD: str = "cps"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "cps"

    # Full URL override (e.g. sqlite+aiosqlite:///./cps.db for local runs)
    SQLALCHEMY_DATABASE_URI: str | None = None

    @property
    def DATABASE_URL(self) -> str:
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 12 * 60

    # CORS - accepts comma-separated string from env vars
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5000"]

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',')]
        return v

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str | None = None

    # Allowed drift (kg/ha) between a submitted productivity figure and
    # production_amount / farm_area before a warning is raised
    PRODUCTIVITY_TOLERANCE: float = 0.01

    @property
    def expose_errors(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT != "production"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance"""
    return Settings()


settings = get_settings()
