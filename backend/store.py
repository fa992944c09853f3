"""SQLite repository for the workout ledger.

The store is a thin record layer: it creates, fetches, updates and deletes
rows and leaves every invariant that spans several records (open sessions,
running volume) to :mod:`backend.sessions`.  Writes are not committed until
:meth:`LedgerStore.save` is called, or the surrounding
:meth:`LedgerStore.transaction` block exits successfully.

Cascades are declared in the schema.  A set entry is owned by both its
exercise and its session, so deleting either owner removes the set.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from backend import DEFAULT_DB_PATH
from backend.errors import StoreError
from backend.ledger import Exercise, Session, SetEntry, Workout

SCHEMA = """
CREATE TABLE IF NOT EXISTS workouts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS exercises (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workout_id INTEGER REFERENCES workouts(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'chest',
    note TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workout_id INTEGER NOT NULL REFERENCES workouts(id) ON DELETE CASCADE,
    start_time REAL,
    end_time REAL,
    duration REAL NOT NULL DEFAULT 0,
    total_volume REAL NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS set_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    exercise_id INTEGER NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
    session_id INTEGER REFERENCES sessions(id) ON DELETE CASCADE,
    weight REAL NOT NULL CHECK (weight >= 0),
    reps INTEGER NOT NULL CHECK (reps >= 0),
    timestamp REAL
);
CREATE INDEX IF NOT EXISTS idx_exercises_workout ON exercises(workout_id);
CREATE INDEX IF NOT EXISTS idx_sessions_workout ON sessions(workout_id);
CREATE INDEX IF NOT EXISTS idx_set_entries_exercise ON set_entries(exercise_id);
CREATE INDEX IF NOT EXISTS idx_set_entries_session ON set_entries(session_id);
"""

_WORKOUT_COLS = "id, name"
_EXERCISE_COLS = "id, name, category, note, workout_id"
_SESSION_COLS = "id, workout_id, start_time, end_time, duration, total_volume"
_SET_COLS = "id, exercise_id, session_id, weight, reps, timestamp"


class LedgerStore:
    """Record store backed by a single SQLite connection."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Commit handling
    # ------------------------------------------------------------------
    def save(self) -> None:
        """Commit pending writes, raising :class:`StoreError` on failure."""

        try:
            self.conn.commit()
        except sqlite3.Error as exc:
            logging.exception("Failed to commit changes to %s", self.db_path)
            self.rollback()
            raise StoreError(str(exc)) from exc

    def rollback(self) -> None:
        try:
            self.conn.rollback()
        except sqlite3.Error:
            logging.exception("Rollback failed on %s", self.db_path)

    @contextmanager
    def transaction(self) -> Iterator["LedgerStore"]:
        """Run a block of writes atomically.

        Any exception rolls the block back.  SQLite errors are logged and
        re-raised as :class:`StoreError`; other exceptions propagate
        unchanged.
        """

        try:
            yield self
            self.save()
        except sqlite3.Error as exc:
            logging.exception("Store transaction failed on %s", self.db_path)
            self.rollback()
            raise StoreError(str(exc)) from exc
        except BaseException:
            self.rollback()
            raise

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, params)

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------
    def create_workout(self, name: str) -> Workout:
        cur = self._execute("INSERT INTO workouts (name) VALUES (?)", (name,))
        return Workout(cur.lastrowid, name)

    def get_workout(self, workout_id: int) -> Workout | None:
        row = self._execute(
            f"SELECT {_WORKOUT_COLS} FROM workouts WHERE id = ?", (workout_id,)
        ).fetchone()
        return Workout(*row) if row else None

    def list_workouts(self) -> list[Workout]:
        """Return all workouts ordered by name."""

        rows = self._execute(
            f"SELECT {_WORKOUT_COLS} FROM workouts ORDER BY name, id"
        ).fetchall()
        return [Workout(*row) for row in rows]

    def delete_workout(self, workout: Workout) -> None:
        """Delete ``workout`` with its exercises, sessions and sets."""

        self._execute("DELETE FROM workouts WHERE id = ?", (workout.id,))

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------
    def create_exercise(
        self,
        workout: Workout | None,
        name: str,
        category: str = "chest",
        note: str = "",
    ) -> Exercise:
        workout_id = workout.id if workout is not None else None
        cur = self._execute(
            "INSERT INTO exercises (workout_id, name, category, note) VALUES (?, ?, ?, ?)",
            (workout_id, name, category, note),
        )
        return Exercise(cur.lastrowid, name, category, note, workout_id)

    def get_exercise(self, exercise_id: int) -> Exercise | None:
        row = self._execute(
            f"SELECT {_EXERCISE_COLS} FROM exercises WHERE id = ?", (exercise_id,)
        ).fetchone()
        return Exercise(*row) if row else None

    def list_exercises(self) -> list[Exercise]:
        """Return every exercise, attached or not, ordered by name."""

        rows = self._execute(
            f"SELECT {_EXERCISE_COLS} FROM exercises ORDER BY name, id"
        ).fetchall()
        return [Exercise(*row) for row in rows]

    def exercises_for(self, workout: Workout) -> list[Exercise]:
        rows = self._execute(
            f"SELECT {_EXERCISE_COLS} FROM exercises WHERE workout_id = ? ORDER BY name, id",
            (workout.id,),
        ).fetchall()
        return [Exercise(*row) for row in rows]

    def update_exercise(self, exercise: Exercise) -> None:
        """Write name, category, note and owner of ``exercise``."""

        self._execute(
            "UPDATE exercises SET name = ?, category = ?, note = ?, workout_id = ? WHERE id = ?",
            (
                exercise.name,
                exercise.category,
                exercise.note,
                exercise.workout_id,
                exercise.id,
            ),
        )

    def delete_exercise(self, exercise: Exercise) -> None:
        self._execute("DELETE FROM exercises WHERE id = ?", (exercise.id,))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def create_session(
        self,
        workout: Workout,
        start_time: float | None,
        end_time: float | None = None,
        duration: float = 0.0,
        total_volume: float = 0.0,
    ) -> Session:
        cur = self._execute(
            """
            INSERT INTO sessions (workout_id, start_time, end_time, duration, total_volume)
            VALUES (?, ?, ?, ?, ?)
            """,
            (workout.id, start_time, end_time, duration, total_volume),
        )
        return Session(
            cur.lastrowid, workout.id, start_time, end_time, duration, total_volume
        )

    def get_session(self, session_id: int) -> Session | None:
        row = self._execute(
            f"SELECT {_SESSION_COLS} FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return Session(*row) if row else None

    def list_sessions(self, limit: int | None = None) -> list[Session]:
        """Return sessions with the most recent start first."""

        query = f"SELECT {_SESSION_COLS} FROM sessions ORDER BY start_time DESC, id DESC"
        if limit is not None:
            rows = self._execute(query + " LIMIT ?", (limit,)).fetchall()
        else:
            rows = self._execute(query).fetchall()
        return [Session(*row) for row in rows]

    def sessions_for(self, workout: Workout) -> list[Session]:
        rows = self._execute(
            f"SELECT {_SESSION_COLS} FROM sessions WHERE workout_id = ? ORDER BY start_time, id",
            (workout.id,),
        ).fetchall()
        return [Session(*row) for row in rows]

    def open_sessions(self) -> list[Session]:
        """Return sessions without an end time, newest first."""

        rows = self._execute(
            f"SELECT {_SESSION_COLS} FROM sessions WHERE end_time IS NULL "
            "ORDER BY start_time DESC, id DESC"
        ).fetchall()
        return [Session(*row) for row in rows]

    def update_session(self, session: Session) -> None:
        self._execute(
            """
            UPDATE sessions
            SET start_time = ?, end_time = ?, duration = ?, total_volume = ?
            WHERE id = ?
            """,
            (
                session.start_time,
                session.end_time,
                session.duration,
                session.total_volume,
                session.id,
            ),
        )

    def delete_session(self, session: Session) -> None:
        """Delete ``session`` and its member sets."""

        self._execute("DELETE FROM sessions WHERE id = ?", (session.id,))

    # ------------------------------------------------------------------
    # Set entries
    # ------------------------------------------------------------------
    def create_set(
        self,
        exercise: Exercise,
        session: Session | None,
        weight: float,
        reps: int,
        timestamp: float | None,
    ) -> SetEntry:
        session_id = session.id if session is not None else None
        cur = self._execute(
            """
            INSERT INTO set_entries (exercise_id, session_id, weight, reps, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (exercise.id, session_id, weight, reps, timestamp),
        )
        return SetEntry(cur.lastrowid, exercise.id, session_id, weight, reps, timestamp)

    def get_set(self, set_id: int) -> SetEntry | None:
        row = self._execute(
            f"SELECT {_SET_COLS} FROM set_entries WHERE id = ?", (set_id,)
        ).fetchone()
        return SetEntry(*row) if row else None

    def sets_for_exercise(self, exercise: Exercise) -> list[SetEntry]:
        """Return the sets of ``exercise`` ordered by timestamp."""

        rows = self._execute(
            f"SELECT {_SET_COLS} FROM set_entries WHERE exercise_id = ? ORDER BY timestamp, id",
            (exercise.id,),
        ).fetchall()
        return [SetEntry(*row) for row in rows]

    def sets_for_session(self, session: Session) -> list[SetEntry]:
        rows = self._execute(
            f"SELECT {_SET_COLS} FROM set_entries WHERE session_id = ? ORDER BY timestamp, id",
            (session.id,),
        ).fetchall()
        return [SetEntry(*row) for row in rows]

    def delete_set(self, entry: SetEntry) -> None:
        self._execute("DELETE FROM set_entries WHERE id = ?", (entry.id,))

    # ------------------------------------------------------------------
    # Bulk helpers
    # ------------------------------------------------------------------
    def delete_all(self) -> None:
        """Remove every workout, exercise, session and set."""

        for table in ("set_entries", "sessions", "exercises", "workouts"):
            self._execute(f"DELETE FROM {table}")

    def counts(self) -> dict[str, int]:
        """Return the number of rows per entity table."""

        result = {}
        for table in ("workouts", "exercises", "sessions", "set_entries"):
            result[table] = self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        return result
