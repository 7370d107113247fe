import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    eurostat_base_url: str = Field(
        default="https://ec.europa.eu/eurostat/api/dissemination/statistics/1.0",
        alias="EUROSTAT_BASE_URL",
    )
    oecd_base_url: str = Field(default="https://sdmx.oecd.org/public/rest", alias="OECD_BASE_URL")
    ilostat_base_url: str = Field(default="https://sdmx.ilo.org/rest", alias="ILOSTAT_BASE_URL")
    worldbank_base_url: str = Field(default="https://api.worldbank.org/v2", alias="WORLDBANK_BASE_URL")

    # HTTP behaviour
    http_timeout: float = Field(default=30.0, alias="HTTP_TIMEOUT")
    structure_timeout: float = Field(
        default=90.0,
        alias="STRUCTURE_TIMEOUT",
        description="Timeout for SDMX structure endpoints, which can be slow",
    )
    http_retry_tries: int = Field(default=3, alias="HTTP_RETRY_TRIES")
    http_retry_base_delay: float = Field(default=0.35, alias="HTTP_RETRY_BASE_DELAY")
    rate_limit_floor: float = Field(
        default=2.0,
        alias="RATE_LIMIT_FLOOR",
        description="Minimum per-attempt delay (seconds) after a 429 / Too Many Requests",
    )
    contact_email: str | None = Field(default=None, alias="CONTACT_EMAIL")

    # Cache TTLs (milliseconds)
    eurostat_cache_ttl_ms: int = Field(default=1_800_000, alias="EUROSTAT_CACHE_TTL_MS")
    oecd_cache_ttl_ms: int = Field(default=3_600_000, alias="OECD_CACHE_TTL_MS")
    default_cache_ttl_ms: int = Field(default=900_000, alias="DEFAULT_CACHE_TTL_MS")

    # Reference data
    data_dir: Path = Field(default=DEFAULT_DATA_DIR, alias="DATA_DIR")
    equivalence_file: str = Field(default="equivalence.yml", alias="EQUIVALENCE_FILE")
    default_geo: str = Field(default="SE", alias="DEFAULT_GEO")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,  # Treat empty strings as not set
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case (info, INFO, Info)."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("default_geo", mode="before")
    @classmethod
    def normalize_default_geo(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def equivalence_path(self) -> Path:
        path = Path(self.equivalence_file)
        return path if path.is_absolute() else self.data_dir / path

    @property
    def user_agent(self) -> str:
        base = "statbridge/0.1"
        return f"{base} (mailto:{self.contact_email})" if self.contact_email else base


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(level=level or get_settings().log_level)
