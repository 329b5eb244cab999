"""Shared helpers for the SQLite-backed repositories."""

import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def connect(db_path: Union[str, Path]) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def ensure_parent_dir(db_path: Union[str, Path]) -> None:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_datetime(raw: Optional[str], strict: bool = False) -> Optional[datetime]:
    """Parse a stored ISO-8601 timestamp.

    Malformed values become ``None`` unless ``strict`` is set, in which case the
    ``ValueError`` propagates.
    """
    if not raw:
        return None
    value = str(raw).strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        if strict:
            raise
        logger.warning("Ignoring malformed timestamp %r", raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        logger.warning("Ignoring malformed date %r", raw)
        return None
