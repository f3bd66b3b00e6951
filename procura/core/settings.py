# procura/core/settings.py
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === Algemeen ===
    app_env: str = "local"  # local | development | production
    currency: str = "EUR"

    # === Quote policy ===
    quote_validity_days: int = Field(14, ge=1, description="Geldigheid van een quote per request")
    bundled_quote_validity_days: int = Field(30, ge=1, description="Geldigheid van een gebundelde quote")
    delivery_lead_days: int = Field(4, ge=0)
    expiring_soon_days: int = Field(7, ge=0)

    # === Catalog seed ===
    catalog_path: Optional[str] = None

    # === Logging ===
    log_level: str = "INFO"
    log_json: bool = True  # False: leesbare console-output (lokaal)

    # === Metrics ===
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="PROCURA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance met simpele env-overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
    elif env == "development":
        s.log_level = "DEBUG"

    return s


settings = get_settings()
