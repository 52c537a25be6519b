"""Engine configuration via Pydantic Settings (``STAFFING_*`` env vars)."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Staffing engine configuration loaded from environment variables."""

    # Scheduling
    default_duration_minutes: int = 120  # events without an end time

    # Generated messages
    message_signature: str = "Mathilde Fleurs"
    message_date_format: str = "%d/%m/%Y"

    # Runtime
    log_level: str = "INFO"
    seed_demo_data: bool = True

    model_config = SettingsConfigDict(env_prefix="STAFFING_", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Factory for engine settings (cached singleton)."""
    return Settings()
