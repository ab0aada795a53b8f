import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # === App Metadata ===
    PROJECT_NAME: str = "PrepWise"
    ENVIRONMENT: str = "dev"  # dev, staging, prod
    DEBUG_MODE: bool = True
    API_VERSION: str = "v1"

    # === Security ===
    API_KEY: str = "super-secret-key"
    ENABLE_API_KEY_SECURITY: bool = False
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",     # Local Vite dev
        "https://prepwise.ai",       # Production frontend
    ]

    # === Logging ===
    LOG_LEVEL: str = "INFO"
    ENABLE_JSON_LOGS: bool = False

    @property
    def LOG_LEVEL_NUMERIC(self) -> int:
        return getattr(logging, self.LOG_LEVEL.upper(), logging.INFO)

    # === Database (PostgreSQL or SQLite fallback) ===
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "prepwise_db"
    DATABASE_URL_OVERRIDE: Optional[str] = Field(None, alias="DATABASE_URL")

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        if self.DB_HOST == "sqlite":
            return "sqlite:///./prepwise.db"
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # === LLM ===
    OPENAI_API_KEY: Optional[str] = None
    DEFAULT_LLM_MODEL: str = "gpt-4"

    # === Tavus (video interviews) ===
    TAVUS_API_KEY: Optional[str] = None
    TAVUS_BASE_URL: str = "https://tavusapi.com"
    TAVUS_TIMEOUT_SECONDS: int = 30
    TAVUS_HR_REPLICA_ID: Optional[str] = None
    TAVUS_TECHNICAL_REPLICA_ID: Optional[str] = None
    TAVUS_BEHAVIORAL_REPLICA_ID: Optional[str] = None
    TAVUS_HR_PERSONA_ID: Optional[str] = None
    TAVUS_TECHNICAL_PERSONA_ID: Optional[str] = None
    TAVUS_BEHAVIORAL_PERSONA_ID: Optional[str] = None

    # Base URL the video provider calls back into (tavus/callback)
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # === Stripe ===
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_API_VERSION: str = "2023-10-16"
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # === Conversation minutes ===
    FREE_TIER_MINUTES: int = 25
    DEFAULT_INTERVIEW_DURATION: int = 20

    # === Environment Shortcuts ===
    @property
    def IS_PROD(self) -> bool:
        return self.ENVIRONMENT.lower() == "prod"

    @property
    def IS_DEV(self) -> bool:
        return self.ENVIRONMENT.lower() == "dev"

    @property
    def TAVUS_CALLBACK_URL(self) -> str:
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/tavus/callback"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> AppConfig:
    return AppConfig()


# Global config instance
settings = get_settings()
