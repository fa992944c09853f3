"""Rest cooldown countdown shown after every logged set.

The timer is either idle or running towards a remembered end time.  A one
second clock event recomputes :attr:`CooldownTimer.remaining` from the wall
clock, so a countdown that was suspended with the app catches up as soon as
:meth:`CooldownTimer.resume_if_needed` restarts the tick.

The live display and the "rest over" notification only mirror the
countdown.  Their failures are logged and never stop the timer.
"""

from __future__ import annotations

import logging
import math
import threading
import time

from kivy.clock import Clock

from backend import settings
from backend.channels import LiveDisplay, Notifier

NOTIFICATION_ID = "rest_done"
TICK_INTERVAL = 1


class CooldownTimer:
    """Single cancellable rest countdown."""

    def __init__(
        self,
        live_display: LiveDisplay | None = None,
        notifier: Notifier | None = None,
        clock=Clock,
    ) -> None:
        self.live_display = live_display
        self.notifier = notifier
        self._clock = clock
        self._lock = threading.RLock()
        self._event = None
        self._display_handle = None
        self.cooldown_end: float | None = None
        self.duration: float = 0
        self.remaining: int = 0

    @property
    def is_active(self) -> bool:
        return self.remaining > 0

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start(self, duration: float | None = None) -> None:
        """Start a countdown of ``duration`` seconds.

        ``duration`` defaults to the ``rest_duration`` setting.  A
        countdown that is already running is cancelled first.
        """

        if duration is None:
            duration = settings.get_rest_duration()
        if duration <= 0:
            raise ValueError(f"Cooldown duration must be positive: {duration!r}")
        with self._lock:
            if self.cooldown_end is not None or self._event is not None:
                self.cancel()
            start = time.time()
            end = start + duration
            self.cooldown_end = end
            self.duration = duration
            self.remaining = int(math.ceil(duration))

            self._register_display(start, duration)
            self._schedule_notification(duration)
            self._start_countdown(end)
        logging.info("Started %.0f second cooldown", duration)

    def cancel(self) -> None:
        """Stop the countdown and withdraw its side channels.

        Local state is reset before this returns.  Removing the live
        display happens on the next clock frame.
        """

        with self._lock:
            self.cooldown_end = None
            self._stop_tick()
            self.remaining = 0
            if self.notifier is not None:
                try:
                    self.notifier.cancel(NOTIFICATION_ID)
                except Exception:
                    logging.exception("Failed to cancel rest notification")
            handle, self._display_handle = self._display_handle, None
            if handle is not None and self.live_display is not None:
                self._clock.schedule_once(lambda dt: self._dismiss(handle), 0)
        logging.info("Cooldown cancelled")

    def resume_if_needed(self) -> bool:
        """Restart the tick after the app returns to the foreground.

        Returns ``True`` if a countdown is still running.  The live display
        and notification registered by :meth:`start` are left as they are.
        A countdown that ran out while the app was paused delivers its
        overdue notification before going idle.
        """

        with self._lock:
            end = self.cooldown_end
            if end is None or time.time() >= end:
                if end is not None:
                    self._expire()
                else:
                    self._stop_tick()
                    self.remaining = 0
                return False
            self.remaining = max(0, int(end - time.time()))
            self._start_countdown(end)
        logging.info("Resumed cooldown with %s seconds remaining", self.remaining)
        return True

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------
    def time_string(self) -> str:
        minutes, seconds = divmod(self.remaining, 60)
        return f"{minutes}:{seconds:02d}"

    def progress(self) -> float:
        """Return the elapsed fraction of the current countdown."""

        if not self.duration or not self.is_active:
            return 0.0
        return min(1.0, max(0.0, (self.duration - self.remaining) / self.duration))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _start_countdown(self, end: float) -> None:
        self._stop_tick()
        self._event = self._clock.schedule_interval(self._tick, TICK_INTERVAL)

    def _stop_tick(self) -> None:
        if self._event is not None:
            self._event.cancel()
            self._event = None

    def _tick(self, dt) -> bool | None:
        with self._lock:
            end = self.cooldown_end
            if end is None:
                self._stop_tick()
                return False
            self.remaining = max(0, int(end - time.time()))
            if self.remaining <= 0:
                self._expire()
                return False
        return None

    def _expire(self) -> None:
        if self.notifier is not None:
            try:
                self.notifier.deliver_pending(NOTIFICATION_ID)
            except Exception:
                logging.exception("Failed to deliver rest notification")
        self.cancel()

    def _register_display(self, start: float, duration: float) -> None:
        if self.live_display is None or not settings.get_value("live_display_on", True):
            return
        try:
            self._display_handle = self.live_display.register(start, duration)
        except Exception:
            logging.exception("Live display registration failed")

    def _schedule_notification(self, duration: float) -> None:
        if self.notifier is None or not settings.get_value("notifications_on", True):
            return
        try:
            self.notifier.schedule(
                NOTIFICATION_ID,
                duration,
                "Rest Time Over",
                f"Your {int(duration)} seconds rest is complete",
            )
        except Exception:
            logging.exception("Failed to schedule rest notification")

    def _dismiss(self, handle) -> None:
        try:
            self.live_display.dismiss(handle)
        except Exception:
            logging.exception("Failed to dismiss live display %s", handle)
