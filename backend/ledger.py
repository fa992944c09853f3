"""Entities of the workout ledger and volume helpers.

The objects in this module mirror rows of the SQLite store.  Relationships
are kept as foreign key ids (``workout_id``, ``exercise_id`` and
``session_id``) and resolved through :class:`backend.store.LedgerStore`.
Entities compare by identity so the session cache can hand out the very
same :class:`Session` instance while it stays open.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable


class ExerciseCategory(str, Enum):
    LEGS = "legs"
    BICEPS = "biceps"
    TRICEPS = "triceps"
    ABS = "abs"
    BACK = "back"
    SHOULDERS = "shoulders"
    CHEST = "chest"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_text(cls, value: str | None) -> "ExerciseCategory":
        """Return the category for ``value`` falling back to ``CHEST``."""

        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.CHEST


@dataclass(eq=False)
class Workout:
    id: int
    name: str


@dataclass(eq=False)
class Exercise:
    id: int
    name: str
    category: str
    note: str = ""
    workout_id: int | None = None

    @property
    def category_enum(self) -> ExerciseCategory:
        return ExerciseCategory.from_text(self.category)


@dataclass(eq=False)
class Session:
    id: int
    workout_id: int
    start_time: float | None
    end_time: float | None = None
    duration: float = 0.0
    total_volume: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(eq=False)
class SetEntry:
    id: int
    exercise_id: int
    session_id: int | None
    weight: float
    reps: int
    timestamp: float | None

    @property
    def volume(self) -> float:
        return set_volume(self.weight, self.reps)


def validate_set_values(weight, reps) -> tuple[float, int]:
    """Return ``(weight, reps)`` coerced to ``float``/``int``.

    ``ValueError`` is raised for negative values, booleans, non-integral
    repetitions or anything that is not a number.
    """

    if isinstance(weight, bool) or isinstance(reps, bool):
        raise ValueError("Weight and reps must be numbers")
    try:
        weight = float(weight)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid weight: {weight!r}") from None
    if isinstance(reps, float) and not reps.is_integer():
        raise ValueError(f"Reps must be a whole number: {reps!r}")
    try:
        reps = int(reps)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid reps: {reps!r}") from None
    if weight != weight or weight < 0:
        raise ValueError(f"Weight must be non-negative: {weight!r}")
    if reps < 0:
        raise ValueError(f"Reps must be non-negative: {reps!r}")
    return weight, reps


def set_volume(weight: float, reps: int) -> float:
    """Volume contributed by one set (kg × reps)."""

    return float(weight) * int(reps)


def total_volume(sets: Iterable[SetEntry]) -> float:
    return sum((entry.volume for entry in sets), 0.0)


def _sort_key(entry: SetEntry) -> float:
    return entry.timestamp if entry.timestamp is not None else float("-inf")


def last_set(sets: Iterable[SetEntry]) -> SetEntry | None:
    """Return the newest set in ``sets`` or ``None`` when empty."""

    ordered = sorted(sets, key=_sort_key)
    return ordered[-1] if ordered else None


def volume_by_day(sets: Iterable[SetEntry]) -> list[tuple[date, float, list[SetEntry]]]:
    """Group ``sets`` by local calendar day.

    Returns ``(day, volume, sets)`` tuples ordered by day with the sets of
    each day ordered by timestamp.  Sets without a timestamp are ignored.
    """

    groups: dict[date, list[SetEntry]] = {}
    for entry in sets:
        if entry.timestamp is None:
            continue
        day = datetime.fromtimestamp(entry.timestamp).date()
        groups.setdefault(day, []).append(entry)
    result = []
    for day in sorted(groups):
        day_sets = sorted(groups[day], key=_sort_key)
        result.append((day, total_volume(day_sets), day_sets))
    return result


def has_set_today(sets: Iterable[SetEntry], now: float | None = None) -> bool:
    """Return ``True`` if any set was logged on the current local day."""

    today = datetime.fromtimestamp(now).date() if now is not None else date.today()
    return any(
        entry.timestamp is not None
        and datetime.fromtimestamp(entry.timestamp).date() >= today
        for entry in sets
    )
