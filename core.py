"""Convenience facade over the backend modules.

Screens and scripts import from here so they do not need to know which
backend module implements a helper.
"""

from __future__ import annotations

from backend import DEFAULT_DB_PATH, DEFAULT_REST_DURATION, TIMESTAMP_FORMAT
from backend.cooldown import CooldownTimer
from backend.csv_transfer import export_csv, import_csv
from backend.errors import (
    ExternalChannelError,
    IntegrityError,
    ParseError,
    StoreError,
    TrackerError,
)
from backend.ledger import (
    Exercise,
    ExerciseCategory,
    Session,
    SetEntry,
    Workout,
    has_set_today,
    last_set,
    total_volume,
    volume_by_day,
)
from backend.services import TrackerServices
from backend.sessions import SessionManager, format_duration, session_history
from backend.store import LedgerStore

__all__ = [
    "DEFAULT_DB_PATH",
    "DEFAULT_REST_DURATION",
    "TIMESTAMP_FORMAT",
    "CooldownTimer",
    "export_csv",
    "import_csv",
    "ExternalChannelError",
    "IntegrityError",
    "ParseError",
    "StoreError",
    "TrackerError",
    "Exercise",
    "ExerciseCategory",
    "Session",
    "SetEntry",
    "Workout",
    "has_set_today",
    "last_set",
    "total_volume",
    "volume_by_day",
    "TrackerServices",
    "SessionManager",
    "format_duration",
    "session_history",
    "LedgerStore",
]
