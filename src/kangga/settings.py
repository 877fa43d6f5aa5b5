from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KYC_DOCUMENT_TYPES = ("GOVT_ID", "PRIVATE_ID", "DRIVER_LICENSE", "OR", "CR", "SELFIE")
DEFAULT_REQUIRED_DOCUMENTS = ["DRIVER_LICENSE", "OR", "CR", "SELFIE"]


class LedgerSettings(BaseSettings):
    """Wallet fees and balance thresholds."""

    platform_fee: Decimal = Field(
        default=Decimal("5.00"),
        gt=0,
        description="Fee debited from the worker wallet when a trip is assigned",
    )
    no_show_penalty: Decimal = Field(
        default=Decimal("5.00"),
        ge=0,
        description="Debit applied when a trip is cancelled for a worker no-show",
    )
    low_balance_threshold: int = Field(
        default=5,
        ge=1,
        description="Transaction capacity below which the worker is warned to reload",
    )
    currency: str = "PHP"

    model_config = SettingsConfigDict(env_prefix="LEDGER_")


class DispatchSettings(BaseSettings):
    """KYC requirements and feed sizing for assignment."""

    ride_required_documents: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_DOCUMENTS)
    )
    delivery_required_documents: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_DOCUMENTS)
    )
    available_page_size: int = Field(default=100, ge=1, le=1000)

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")

    @field_validator("ride_required_documents", "delivery_required_documents")
    @classmethod
    def validate_document_types(cls, v: list[str]) -> list[str]:
        normalized = [doc.strip().upper() for doc in v]
        unknown = [doc for doc in normalized if doc not in KYC_DOCUMENT_TYPES]
        if unknown:
            raise ValueError(f"Unknown KYC document types: {', '.join(unknown)}")
        return normalized


class NegotiationSettings(BaseSettings):
    """Top-up counter-offer policy."""

    allow_discount: bool = Field(
        default=False,
        description="Allow negative top-ups that lower the fare",
    )
    stack_top_ups: bool = Field(
        default=False,
        description="Add an accepted top-up to the previous one instead of replacing it",
    )
    max_top_up: Decimal = Field(default=Decimal("500.00"), gt=0)

    model_config = SettingsConfigDict(env_prefix="NEGOTIATION_")


class DatabaseSettings(BaseSettings):
    url: str = "sqlite:///data/kangga.db"
    echo: bool = False
    busy_timeout_seconds: float = Field(default=30.0, ge=0.0, le=300.0)
    max_retries: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=0.05, ge=0.0, le=5.0)

    model_config = SettingsConfigDict(env_prefix="DATABASE_")


class RedisSettings(BaseSettings):
    enabled: bool = True
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    ssl: bool = False

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class APISettings(BaseSettings):
    key: str = ""
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="API_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "APISettings":
        if not self.key:
            raise ValueError("Required credential not provided: API_KEY")
        return self


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")


class LoggingSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    negotiation: NegotiationSettings = Field(default_factory=NegotiationSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    api: APISettings = Field(default_factory=APISettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
