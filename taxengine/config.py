"""
config.py — taxengine settings and logging setup.

Usage:
    from taxengine.config import settings
    print(settings.max_suggestions)

Import `settings` directly as a module-level singleton; never construct Settings per call.
"""
import logging
from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TAXENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Application ---
    debug: bool = False
    log_level: str = "INFO"

    # --- Optimisation suggestions ---
    # Suggestions whose potential saving is below this amount (INR) are dropped.
    suggestion_min_saving: Decimal = Decimal("0")
    # None → return every suggestion; otherwise keep the top N by saving.
    max_suggestions: Optional[int] = None

    # --- Slab table onboarding ---
    # JSON file with a list of extra slab tables, registered into the default registry at import.
    slab_tables_file: Optional[str] = None


# Module-level singleton: import this, never construct Settings per call
settings = Settings()


def configure_logging() -> None:
    """Apply root logging config for processes that embed the engine (CLI tools, workers, tests)."""
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s — %(message)s",
    )
