"""CSV export and import of the whole workout ledger.

Every exported row joins one workout, one of its exercises and one of the
exercise's sets together with the start and end of the set's session.
Workouts without exercises and exercises without sets still get a row with
the missing columns left empty, so an export can be imported again without
losing them.

Text columns are always wrapped in double quotes while weight and reps are
written bare.  Quotes inside names or notes are not escaped; the row
splitter simply toggles its "inside quotes" state on every quote.

Importing is destructive: the existing ledger is deleted before the first
row is read and the whole import is committed as one transaction.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime

from backend import TIMESTAMP_FORMAT
from backend.errors import ParseError, StoreError
from backend.ledger import Exercise, Session, Workout, set_volume
from backend.store import LedgerStore

HEADER = (
    "WorkoutName,ExerciseName,ExerciseCategory,ExerciseNote,"
    "SetWeight,SetReps,SetTimestamp,SessionStartTime,SessionEndTime"
)
FIELD_COUNT = 9


def format_timestamp(value: float | None) -> str:
    """Return ``value`` as local ``YYYY-MM-DD HH:MM:SS`` or ``""``."""

    if value is None:
        return ""
    return datetime.fromtimestamp(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> float | None:
    """Inverse of :func:`format_timestamp`; ``None`` for empty or bad text."""

    text = text.strip()
    if not text:
        return None
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT).timestamp()
    except ValueError:
        logging.warning("Ignoring malformed timestamp %r", text)
        return None


def _quoted(value: str) -> str:
    return f'"{value}"'


def _number(value: float | int) -> str:
    if isinstance(value, float):
        return repr(value)
    return str(value)


def _row(workout, exercise="", category="", note="", weight="", reps="",
         timestamp="", start="", end="") -> str:
    return ",".join(
        [
            _quoted(workout),
            _quoted(exercise),
            _quoted(category),
            _quoted(note),
            weight,
            reps,
            _quoted(timestamp),
            _quoted(start),
            _quoted(end),
        ]
    )


def export_csv(store: LedgerStore) -> str:
    """Return the complete ledger as CSV text ending with a newline."""

    lines = [HEADER]
    sessions: dict[int, Session | None] = {}
    for workout in store.list_workouts():
        exercises = store.exercises_for(workout)
        if not exercises:
            lines.append(_row(workout.name))
            continue
        for exercise in exercises:
            category = exercise.category or "None"
            sets = store.sets_for_exercise(exercise)
            if not sets:
                lines.append(_row(workout.name, exercise.name, category, exercise.note))
                continue
            for entry in sets:
                session = None
                if entry.session_id is not None:
                    if entry.session_id not in sessions:
                        sessions[entry.session_id] = store.get_session(entry.session_id)
                    session = sessions[entry.session_id]
                lines.append(
                    _row(
                        workout.name,
                        exercise.name,
                        category,
                        exercise.note,
                        _number(float(entry.weight)),
                        _number(int(entry.reps)),
                        format_timestamp(entry.timestamp),
                        format_timestamp(session.start_time if session else None),
                        format_timestamp(session.end_time if session else None),
                    )
                )
    return "\n".join(lines) + "\n"


def split_csv_row(row: str) -> list[str]:
    """Split ``row`` on commas that are not inside double quotes.

    Quote characters toggle the quoted state and are dropped from the
    returned fields.
    """

    fields: list[str] = []
    current: list[str] = []
    inside_quotes = False
    for char in row:
        if char == '"':
            inside_quotes = not inside_quotes
        elif char == "," and not inside_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def parse_row(row: str) -> dict:
    """Return the fields of one data row as a mapping.

    ``weight`` and ``reps`` are ``None`` unless both columns hold valid
    numbers.  Raises :class:`ParseError` for rows with too few fields or
    without a workout name.
    """

    columns = split_csv_row(row)
    if len(columns) < FIELD_COUNT:
        raise ParseError(f"Expected {FIELD_COUNT} fields, got {len(columns)}")
    workout_name = columns[0].strip('"')
    if not workout_name:
        raise ParseError("Missing workout name")

    weight_text, reps_text = columns[4].strip(), columns[5].strip()
    weight = reps = None
    if weight_text and reps_text:
        try:
            weight = float(weight_text)
            reps = int(reps_text)
        except ValueError:
            logging.warning("Ignoring set with invalid weight/reps %r/%r", weight_text, reps_text)
            weight = reps = None
        else:
            if weight < 0 or reps < 0:
                logging.warning("Ignoring set with negative weight/reps %r/%r", weight, reps)
                weight = reps = None

    start_text = columns[7].strip('"')
    return {
        "workout": workout_name,
        "exercise": columns[1].strip('"'),
        "category": columns[2].strip('"'),
        "note": columns[3].strip('"'),
        "weight": weight,
        "reps": reps,
        "timestamp": parse_timestamp(columns[6].strip('"')),
        "session_start_text": start_text,
        "session_start": parse_timestamp(start_text),
        "session_end": parse_timestamp(columns[8].strip('"')),
    }


def import_csv(text: str, store: LedgerStore, session_manager=None) -> dict:
    """Replace the whole ledger in ``store`` with the rows of ``text``.

    The first line is treated as the header.  Rows that cannot be parsed are
    skipped.  Repeated workouts, exercises and sessions are merged using the
    workout name, ``workout|exercise`` and ``workout|session start`` keys.
    A session whose start column is empty is never shared between rows.

    Returns a report with the number of created ``workouts``,
    ``exercises``, ``sessions`` and ``sets`` plus ``skipped`` rows.  If the
    store fails the previous ledger is kept and :class:`StoreError` raised.
    With a ``session_manager`` the imported open sessions become its cached
    open sessions.
    """

    report = {"workouts": 0, "exercises": 0, "sessions": 0, "sets": 0, "skipped": 0}
    rows = text.split("\n")[1:]

    workouts: dict[str, Workout] = {}
    exercises: dict[str, Exercise] = {}
    sessions: dict[str, Session] = {}
    touched: dict[int, Session] = {}

    try:
        with store.transaction():
            store.delete_all()
            for number, row in enumerate(rows, start=2):
                if not row.strip():
                    continue
                try:
                    fields = parse_row(row.rstrip("\r"))
                except ParseError as exc:
                    logging.warning("Skipping CSV line %s: %s", number, exc)
                    report["skipped"] += 1
                    continue

                workout_name = fields["workout"]
                workout = workouts.get(workout_name)
                if workout is None:
                    workout = store.create_workout(workout_name)
                    workouts[workout_name] = workout
                    report["workouts"] += 1

                if not fields["exercise"]:
                    continue
                exercise_key = f"{workout_name}|{fields['exercise']}"
                exercise = exercises.get(exercise_key)
                if exercise is None:
                    exercise = store.create_exercise(
                        workout, fields["exercise"], fields["category"], fields["note"]
                    )
                    exercises[exercise_key] = exercise
                    report["exercises"] += 1
                elif exercise.note != fields["note"]:
                    exercise.note = fields["note"]
                    store.update_exercise(exercise)

                if fields["weight"] is None or fields["reps"] is None:
                    continue

                start_text = fields["session_start_text"]
                session_key = f"{workout_name}|{start_text}"
                session = sessions.get(session_key) if start_text else None
                if session is None:
                    start, end = fields["session_start"], fields["session_end"]
                    duration = 0.0
                    if end is not None:
                        duration = end - (start if start is not None else time.time())
                    session = store.create_session(workout, start, end, duration)
                    report["sessions"] += 1
                    if start_text:
                        sessions[session_key] = session

                store.create_set(
                    exercise, session, fields["weight"], fields["reps"], fields["timestamp"]
                )
                session.total_volume += set_volume(fields["weight"], fields["reps"])
                touched[session.id] = session
                report["sets"] += 1

            for session in touched.values():
                store.update_session(session)
    except StoreError:
        logging.error("Failed to save imported data; previous ledger kept")
        raise

    if session_manager is not None:
        session_manager.reset()
        session_manager.recover_open_sessions()
    logging.info(
        "Imported %(workouts)s workouts, %(exercises)s exercises, "
        "%(sessions)s sessions and %(sets)s sets (%(skipped)s rows skipped)",
        report,
    )
    return report
