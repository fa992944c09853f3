"""Shared constants for backend modules."""

from __future__ import annotations

from pathlib import Path

# Default rest cooldown between sets in seconds
DEFAULT_REST_DURATION = 120

# Path to the SQLite database holding the workout ledger
DEFAULT_DB_PATH = (
    Path(__file__).resolve().parent.parent / "data" / "gym_tracker.db"
)

# Timestamp layout used by the CSV transfer format (local time)
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

__all__ = [
    "DEFAULT_REST_DURATION",
    "DEFAULT_DB_PATH",
    "TIMESTAMP_FORMAT",
]
