# backend/stockledger/core/settings.py
"""
StockLedger - Configuration Management with pydantic-settings

- Loads from environment and root .env
- Validates and normalizes values
- Cached singleton via get_settings()
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# backend/stockledger/core/settings.py -> <repo>/.env
_ENV_FILE = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===================
    # Application Settings
    # ===================
    PROJECT_NAME: str = "StockLedger"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Deployment environment")

    # ===================
    # Database Settings
    # ===================
    DB_HOST: str = Field(default="localhost", description="PostgreSQL host")
    DB_PORT: int = Field(default=5432, description="PostgreSQL port")
    DB_NAME: str = Field(default="stockledger", description="Database name")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str = Field(default="postgres", description="Database password")
    DATABASE_URL: Optional[str] = Field(
        default=None, description="Full database URL (overrides DB_* settings)"
    )

    @property
    def database_url(self) -> str:
        """Build PostgreSQL database URL from components or use explicit URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    # ===================
    # CORS Settings
    # ===================
    # NoDecode: env values arrive as "a,b" and are split by the validator below
    CORS_ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins",
    )

    @field_validator("CORS_ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ===================
    # Logging
    # ===================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    LOG_FILE: Optional[str] = None

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    # ===================
    # Document Numbering
    # ===================
    ADJUSTMENT_NUMBER_PREFIX: str = "ADJ"
    INVOICE_NUMBER_PREFIX: str = "INV"
    DOCUMENT_NUMBER_DIGITS: int = Field(default=6, ge=1, le=12)

    # ===================
    # Reconciliation
    # ===================
    ADJUSTMENT_ATOMIC_BATCH: bool = Field(
        default=True,
        description="Roll back the whole adjustment batch when any ledger update fails",
    )
    LEDGER_MAX_RETRIES: int = Field(default=3, ge=1, le=10)
    INVENTORY_DEDUCTION_POINT: str = Field(
        default="none",
        description="When invoiced quantities leave on-hand stock: 'none' or 'invoice'",
    )
    DEFAULT_LOCATION: str = "MAIN"

    @field_validator("INVENTORY_DEDUCTION_POINT")
    @classmethod
    def validate_deduction_point(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("none", "invoice"):
            raise ValueError("INVENTORY_DEDUCTION_POINT must be 'none' or 'invoice'")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
