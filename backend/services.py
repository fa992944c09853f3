"""Application services shared by the screens.

:class:`TrackerServices` wires the store, the session manager, the rest
cooldown and the CSV transfer together.  The app creates one instance at
startup and hands it to whoever needs it instead of relying on module level
singletons.
"""

from __future__ import annotations

import logging
from pathlib import Path

from kivy.clock import Clock

from backend import DEFAULT_DB_PATH, csv_transfer, db_io
from backend.channels import LiveDisplay, Notifier
from backend.cooldown import CooldownTimer
from backend.ledger import Exercise, SetEntry
from backend.sessions import SessionManager
from backend.store import LedgerStore


class TrackerServices:
    def __init__(
        self,
        db_path: Path = DEFAULT_DB_PATH,
        *,
        live_display: LiveDisplay | None = None,
        notifier: Notifier | None = None,
        clock=Clock,
    ) -> None:
        self.store = LedgerStore(db_path)
        self.sessions = SessionManager(self.store)
        self.cooldown = CooldownTimer(live_display, notifier, clock=clock)
        recovered = self.sessions.recover_open_sessions()
        if recovered:
            logging.info("Recovered %s open session(s)", len(recovered))

    def log_set(self, exercise: Exercise, weight: float, reps: int) -> SetEntry:
        """Record a set and start the rest cooldown once it is saved."""

        entry = self.sessions.add_set(exercise, weight, reps)
        self.cooldown.start()
        return entry

    def on_foreground(self) -> None:
        self.cooldown.resume_if_needed()

    def export_csv(self) -> str:
        return csv_transfer.export_csv(self.store)

    def import_csv(self, text: str) -> dict:
        return csv_transfer.import_csv(text, self.store, self.sessions)

    def import_csv_file(self, src_path: Path, backup_dir: Path = db_io.BACKUP_DIR) -> dict:
        return db_io.import_csv_file(src_path, self.store, self.sessions, backup_dir)

    def close(self) -> None:
        self.cooldown.cancel()
        self.store.close()
