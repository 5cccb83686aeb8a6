"""TradeSim global settings — loaded from environment variables via .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """All configuration flows through this class. Never read env vars directly."""

    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Environment ──────────────────────────────────────────────
    tradesim_env: Literal["dev", "prod"] = "dev"

    # ── Account ──────────────────────────────────────────────────
    initial_balance: float = Field(default=10_000.0, ge=0)
    default_leverage: int = Field(default=10, ge=1)
    max_leverage: int = Field(default=100, ge=1)

    # ── Market Feed ──────────────────────────────────────────────
    default_symbol: str = "BTC"
    initial_price: float = Field(default=42_350.75, gt=0)
    tick_interval_seconds: float = Field(default=3.0, gt=0)
    price_history_length: int = Field(default=101, ge=2)
    price_step: float = Field(default=150.0, ge=0)
    history_step: float = Field(default=200.0, ge=0)
    feed_seed: int | None = None

    # ── Logging ──────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False

    @model_validator(mode="after")
    def _check_leverage_bounds(self) -> "Settings":
        """The default leverage has to be one the order form can submit."""
        if self.default_leverage > self.max_leverage:
            msg = (
                f"DEFAULT_LEVERAGE ({self.default_leverage}) must not exceed "
                f"MAX_LEVERAGE ({self.max_leverage})"
            )
            raise ValueError(msg)
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Singleton settings loader — reads .env once, reuses thereafter."""
    global _settings_instance  # noqa: PLW0603
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
