"""Test doubles for the Kivy clock and the cooldown side channels."""

from backend.channels import LiveDisplay, Notifier
from backend.errors import ExternalChannelError


class FakeEvent:
    def __init__(self, callback, interval, repeat, due):
        self.callback = callback
        self.interval = interval
        self.repeat = repeat
        self.due = due
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeClock:
    """Minimal stand-in for :data:`kivy.clock.Clock` with manual time."""

    def __init__(self, start: float = 1_750_000_000.0):
        self.now = start
        self.events: list[FakeEvent] = []

    def time(self) -> float:
        return self.now

    def schedule_interval(self, callback, interval):
        return self._add(callback, interval, True)

    def schedule_once(self, callback, timeout=0):
        return self._add(callback, timeout, False)

    def _add(self, callback, interval, repeat):
        event = FakeEvent(callback, interval, repeat, self.now + interval)
        self.events.append(event)
        return event

    def active(self) -> list[FakeEvent]:
        return [e for e in self.events if not e.cancelled]

    def flush(self) -> None:
        """Run every event that is due without moving time."""
        for event in list(self.events):
            if event.cancelled or event.due > self.now:
                continue
            result = event.callback(event.interval)
            if event.repeat and result is not False and not event.cancelled:
                event.due += event.interval
            else:
                event.cancelled = True
        self.events = self.active()

    def advance(self, seconds: float, step: float = 1.0) -> None:
        """Move time forward ``seconds`` in ``step`` increments, firing events."""
        remaining = seconds
        while remaining > 0:
            delta = min(step, remaining)
            self.now += delta
            remaining -= delta
            self.flush()


class FakeLiveDisplay(LiveDisplay):
    def __init__(self, fail: bool = False, error=ExternalChannelError):
        self.fail = fail
        self.error = error
        self.registered = []
        self.dismissed = []

    def register(self, start_time, duration):
        if self.fail:
            raise self.error("live display unavailable")
        self.registered.append((start_time, duration))
        return len(self.registered)

    def dismiss(self, handle):
        self.dismissed.append(handle)


class FakeNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.scheduled = {}
        self.cancelled = []
        self.delivered = []

    def schedule(self, ident, fire_after, title, body):
        if self.fail:
            raise ExternalChannelError("notifications disabled")
        self.scheduled[ident] = (fire_after, title, body)

    def cancel(self, ident):
        self.cancelled.append(ident)
        self.scheduled.pop(ident, None)

    def deliver_pending(self, ident):
        message = self.scheduled.pop(ident, None)
        if message is not None:
            self.delivered.append(message[1])
