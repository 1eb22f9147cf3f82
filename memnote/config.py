"""
Configuration settings for MemNote.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is read with the ``MEMNOTE_`` prefix (e.g. ``MEMNOTE_FAIL_DELAY_MS``).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MEMNOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Study Session
    # ========================================
    fail_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Delay in ms before a failed card reappears in the queue",
    )
    leech_threshold: int = Field(
        default=5,
        ge=1,
        description="Lapses before a card is classified as a leech",
    )
    show_context: bool = Field(
        default=True,
        description="Show the ancestor path above each card while studying",
    )

    # ─── Interval labels (display only, never computed) ─────────────────────────
    interval_again: str = Field(default="1m", description="Label shown for Again")
    interval_hard: str = Field(default="2d", description="Label shown for Hard")
    interval_good: str = Field(default="5d", description="Label shown for Good")
    interval_easy: str = Field(default="8d", description="Label shown for Easy")

    # ========================================
    # Flashcards (swipe) Mode
    # ========================================
    autoplay_front_ms: int = Field(
        default=2000,
        ge=0,
        description="Auto-play time on the front of a card",
    )
    autoplay_back_ms: int = Field(
        default=3000,
        ge=0,
        description="Auto-play time on the back before marking it good",
    )
    swipe_transition_ms: int = Field(
        default=300,
        ge=0,
        description="Pause after a swipe decision before the next card",
    )

    # ========================================
    # Storage
    # ========================================
    database_path: Path = Field(
        default=Path.home() / ".memnote" / "notes.db",
        description="SQLite file holding documents and SRS data",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def interval_labels(self) -> dict[str, str]:
        """Return the display label for each spaced-mode rating."""
        return {
            "again": self.interval_again,
            "hard": self.interval_hard,
            "good": self.interval_good,
            "easy": self.interval_easy,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
