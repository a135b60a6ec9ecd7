"""Centralised configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/waymark/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class HealingConfig(BaseModel):
    """Tuning for the anchor-substring relocation search."""

    anchor_sizes: tuple[int, ...] = (50, 20, 10)
    search_radius: int = 2000
    min_tolerance: int = 50
    tolerance_ratio: float = 0.5

    @field_validator("anchor_sizes")
    @classmethod
    def _descending_positive(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            msg = "HEALING__ANCHOR_SIZES must list at least one size"
            raise ValueError(msg)
        if any(size <= 0 for size in value):
            msg = "HEALING__ANCHOR_SIZES must be positive"
            raise ValueError(msg)
        if any(a <= b for a, b in zip(value, value[1:], strict=False)):
            msg = "HEALING__ANCHOR_SIZES must be strictly descending"
            raise ValueError(msg)
        return value

    @field_validator("search_radius", "min_tolerance")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            msg = "search radius and tolerance must not be negative"
            raise ValueError(msg)
        return value


class DocumentConfig(BaseModel):
    """Where annotatable text lives in a page and what to ignore."""

    container_selector: str = "#mw-content-text"
    anchor_selector: str = "[id]"
    # Page-number markers and similar furniture inside library text blocks
    chrome_classes: tuple[str, ...] = ("brl-pnum", "page-number", "pagenum")
    min_selection_length: int = 5


class SessionConfig(BaseModel):
    """Timing for the per-page session loop."""

    mutation_debounce_seconds: float = 1.0
    persist_debounce_seconds: float = 2.0
    focus_retries: int = 10
    focus_retry_delay: float = 0.3


class StoreConfig(BaseModel):
    """Unit store (REST backend) connection."""

    base_url: str = "http://localhost:3008"
    api_token: SecretStr = SecretStr("")
    timeout: float = 10.0


class AppConfig(BaseModel):
    """Process-level settings."""

    log_dir: Path = Path("logs")


class DevConfig(BaseModel):
    """Development and testing toggles."""

    store_mock: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``HEALING__SEARCH_RADIUS``, ``STORE__BASE_URL``, ``DEV__STORE_MOCK``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    healing: HealingConfig = HealingConfig()
    document: DocumentConfig = DocumentConfig()
    session: SessionConfig = SessionConfig()
    store: StoreConfig = StoreConfig()
    app: AppConfig = AppConfig()
    dev: DevConfig = DevConfig()

    @model_validator(mode="after")
    def _mock_store_needs_no_url(self) -> Settings:
        if not self.dev.store_mock and not self.store.base_url:
            msg = "STORE__BASE_URL is required unless DEV__STORE_MOCK is enabled"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
