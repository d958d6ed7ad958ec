"""Runtime configuration loaded from the environment (and ``.env``)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .db.utils import resolve_sqlite_url

ROOT_DIR = Path(__file__).resolve().parents[1]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Resolved settings for engines, notification text and scripts.

    Attributes
    ----------
    db_url : str
        SQLAlchemy database URL. Relative SQLite paths are resolved against
        the repository root.
    db_echo : bool
        Echo SQL statements emitted by the engine.
    currency : str
        Currency label used in notification messages.
    log_level : str
        Level name passed to :func:`logging.basicConfig` by the scripts.
    """

    db_url: str
    db_echo: bool = False
    currency: str = "ETB"
    log_level: str = "INFO"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    ``env_file`` defaults to ``.env`` in the repository root; variables
    already present in the process environment take precedence.
    """

    load_dotenv(env_file or ROOT_DIR / ".env")
    return Settings(
        db_url=resolve_sqlite_url(os.getenv("DB_URL", "sqlite:///./dev.db"), ROOT_DIR),
        db_echo=os.getenv("DB_ECHO", "false").strip().lower() in _TRUE_VALUES,
        currency=os.getenv("RAFFLE_CURRENCY", "ETB").strip() or "ETB",
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings, loaded once on first use."""

    return load_settings()


def configure_logging(settings: Settings) -> None:
    """Configure root logging for command line entry points."""

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
