"""Open-session tracking and running volume bookkeeping.

:class:`SessionManager` owns the mapping from a workout to its currently
open session.  Every set logged for a workout lands in that session and
adds its volume to the running ``total_volume``; deleting a set subtracts
the same amount again.  The mapping lives in memory only, so after a
restart :meth:`SessionManager.recover_open_sessions` rebuilds it from the
sessions the store still lists as open.
"""

from __future__ import annotations

import logging
import threading
import time

from backend.errors import IntegrityError, StoreError
from backend.ledger import (
    Exercise,
    Session,
    SetEntry,
    Workout,
    last_set,
    set_volume,
    validate_set_values,
)
from backend.store import LedgerStore


class SessionManager:
    """Maintain at most one open :class:`Session` per workout."""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store
        # workout id -> open session
        self.active_sessions: dict[int, Session] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Open sessions
    # ------------------------------------------------------------------
    def open_session_for(self, workout: Workout) -> Session | None:
        """Return the cached open session of ``workout`` if there is one."""

        with self._lock:
            return self.active_sessions.get(workout.id)

    def get_or_create_open_session(self, workout: Workout) -> Session:
        """Return the open session of ``workout``, starting one if needed.

        Repeated calls return the same instance until the session is
        closed.  A new session is committed before it is cached so a
        failing store never leaves a phantom entry behind.
        """

        with self._lock:
            session = self.active_sessions.get(workout.id)
            if session is not None:
                return session
            with self.store.transaction():
                session = self.store.create_session(workout, start_time=time.time())
            self.active_sessions[workout.id] = session
            logging.info("Started session %s for workout %r", session.id, workout.name)
            return session

    def close_session(self, workout: Workout) -> Session | None:
        """Finish the open session of ``workout``.

        Returns the closed session, or ``None`` if the workout had no open
        session.  When the store rejects the update the session stays open
        and :class:`StoreError` is raised.
        """

        with self._lock:
            session = self.active_sessions.get(workout.id)
            if session is None:
                return None
            self._close(session, time.time())
            del self.active_sessions[workout.id]
            logging.info(
                "Closed session %s after %.0f seconds (volume %.1f)",
                session.id,
                session.duration,
                session.total_volume,
            )
            return session

    def finish_session(self, session: Session) -> Session:
        """Close ``session`` whether or not it is the cached one."""

        with self._lock:
            cached = self.active_sessions.get(session.workout_id)
            if cached is not None and cached.id == session.id:
                session = cached
            if session.is_open:
                self._close(session, time.time())
            if session is cached:
                del self.active_sessions[session.workout_id]
            return session

    def _close(self, session: Session, end_time: float) -> None:
        previous = (session.end_time, session.duration)
        session.end_time = end_time
        session.duration = end_time - (
            session.start_time if session.start_time is not None else end_time
        )
        try:
            with self.store.transaction():
                self.store.update_session(session)
        except StoreError:
            session.end_time, session.duration = previous
            raise

    def reset(self) -> None:
        """Forget every cached open session."""

        with self._lock:
            self.active_sessions.clear()

    def recover_open_sessions(self) -> list[Session]:
        """Rebuild the open-session cache from the store.

        The newest session without an end time is adopted as the open
        session of its workout.  Older open sessions of the same workout
        are closed at the time of their last set, or at their start when
        they have no sets.  Returns the adopted sessions.
        """

        adopted: list[Session] = []
        with self._lock:
            stale: list[Session] = []
            for session in self.store.open_sessions():
                cached = self.active_sessions.get(session.workout_id)
                if cached is not None:
                    if cached.id != session.id:
                        stale.append(session)
                    continue
                self.active_sessions[session.workout_id] = session
                adopted.append(session)
            for session in stale:
                newest = last_set(self.store.sets_for_session(session))
                end = newest.timestamp if newest and newest.timestamp else None
                if end is None:
                    end = session.start_time if session.start_time is not None else time.time()
                self._close(session, end)
                logging.warning(
                    "Auto-closed stale open session %s of workout %s",
                    session.id,
                    session.workout_id,
                )
        return adopted

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------
    def add_set(self, exercise: Exercise, weight: float, reps: int) -> SetEntry:
        """Log a set for ``exercise`` in its workout's open session.

        Raises :class:`IntegrityError` if the exercise is not attached to a
        workout and ``ValueError`` for invalid numbers; nothing is changed
        in either case.  A session started for this set, the new row and the
        volume increment are committed together or not at all.
        """

        weight, reps = validate_set_values(weight, reps)
        with self._lock:
            if exercise.workout_id is None:
                logging.error("Exercise %r has no associated workout", exercise.name)
                raise IntegrityError(f"Exercise {exercise.name!r} has no workout")
            workout = self.store.get_workout(exercise.workout_id)
            if workout is None:
                logging.error(
                    "Exercise %r references missing workout %s",
                    exercise.name,
                    exercise.workout_id,
                )
                raise IntegrityError(f"Workout {exercise.workout_id} does not exist")

            session = self.active_sessions.get(workout.id)
            created = session is None
            previous = 0.0 if created else session.total_volume
            try:
                with self.store.transaction():
                    if created:
                        session = self.store.create_session(
                            workout, start_time=time.time()
                        )
                    session.total_volume = previous + set_volume(weight, reps)
                    entry = self.store.create_set(
                        exercise, session, weight, reps, time.time()
                    )
                    self.store.update_session(session)
            except StoreError:
                if not created:
                    session.total_volume = previous
                raise
            if created:
                self.active_sessions[workout.id] = session
                logging.info(
                    "Started session %s for workout %r", session.id, workout.name
                )
            return entry

    def remove_set(self, entry: SetEntry) -> None:
        """Delete ``entry`` and take its volume off its session.

        Sets without a session are left untouched.  The session volume
        never drops below zero.
        """

        with self._lock:
            if entry.session_id is None:
                logging.warning("Set %s has no session; nothing removed", entry.id)
                return
            session = self._session_by_id(entry.session_id)
            if session is None:
                logging.warning(
                    "Set %s references missing session %s", entry.id, entry.session_id
                )
                return
            previous = session.total_volume
            session.total_volume = max(0.0, previous - entry.volume)
            try:
                with self.store.transaction():
                    self.store.delete_set(entry)
                    self.store.update_session(session)
            except StoreError:
                session.total_volume = previous
                raise

    def _session_by_id(self, session_id: int) -> Session | None:
        for session in self.active_sessions.values():
            if session.id == session_id:
                return session
        return self.store.get_session(session_id)

    # ------------------------------------------------------------------
    # Cascading deletes
    # ------------------------------------------------------------------
    def delete_session(self, session: Session) -> None:
        """Delete ``session`` together with its sets."""

        with self._lock:
            with self.store.transaction():
                self.store.delete_session(session)
            cached = self.active_sessions.get(session.workout_id)
            if cached is not None and cached.id == session.id:
                del self.active_sessions[session.workout_id]

    def delete_exercise(self, exercise: Exercise) -> None:
        """Delete ``exercise`` and its sets, reversing their volume."""

        with self._lock:
            touched: dict[int, tuple[Session, float]] = {}
            for entry in self.store.sets_for_exercise(exercise):
                if entry.session_id is None:
                    continue
                if entry.session_id not in touched:
                    session = self._session_by_id(entry.session_id)
                    if session is None:
                        continue
                    touched[entry.session_id] = (session, session.total_volume)
                session = touched[entry.session_id][0]
                session.total_volume = max(0.0, session.total_volume - entry.volume)
            try:
                with self.store.transaction():
                    for session, _ in touched.values():
                        self.store.update_session(session)
                    self.store.delete_exercise(exercise)
            except StoreError:
                for session, volume in touched.values():
                    session.total_volume = volume
                raise

    def delete_workout(self, workout: Workout) -> None:
        """Delete ``workout`` with every exercise, session and set."""

        with self._lock:
            with self.store.transaction():
                self.store.delete_workout(workout)
            self.active_sessions.pop(workout.id, None)


def session_history(store: LedgerStore, limit: int | None = None) -> list[dict]:
    """Return past and ongoing sessions, most recent first.

    Each item contains ``session``, ``workout_name``, ``is_open``,
    ``duration`` and ``total_volume``.  When ``limit`` is provided only that
    many newest sessions are returned.
    """

    names = {w.id: w.name for w in store.list_workouts()}
    return [
        {
            "session": session,
            "workout_name": names.get(session.workout_id, "Unnamed Workout"),
            "is_open": session.is_open,
            "duration": session.duration,
            "total_volume": session.total_volume,
        }
        for session in store.list_sessions(limit)
    ]


def format_duration(seconds: float) -> str:
    """Return ``seconds`` as ``"1h 5m"`` or ``"12m"``."""

    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
