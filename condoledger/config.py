"""Application configuration from environment variables."""

from decimal import Decimal

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./condoledger.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/condoledger.log", description="Log file path")

    # Locale (SOA display formatting)
    locale: str = Field(default="en_PH", description="Babel locale for formatted amounts and dates")

    # Billing policy
    advance_dues_share: Decimal = Field(
        default=Decimal("0.50"),
        description="Share of an unassigned payment surplus credited to advance dues",
    )

    # API
    api_title: str = Field(default="Condo Ledger API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")

    @field_validator("advance_dues_share")
    @classmethod
    def _share_in_range(cls, value: Decimal) -> Decimal:
        if value < 0 or value > 1:
            raise ValueError("advance_dues_share must be between 0 and 1")
        return value


# Global settings instance
settings = Settings()
