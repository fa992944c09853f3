"""Side channels mirroring the rest cooldown outside the app.

Two channels exist:

* a *live display*, an always visible countdown.  On Android this is an
  ongoing notification whose chronometer counts down to the end of the
  rest period.
* a *notifier* that delivers a one-shot "rest over" notification.

Both are best effort.  Failures surface as
:class:`~backend.errors.ExternalChannelError` and callers log them without
interrupting the countdown.  The module is safe to import on non-Android
platforms; Android operations raise ``ExternalChannelError`` there.
"""

from __future__ import annotations

import itertools
import logging
from functools import partial
from typing import Any, Callable

from kivy.clock import Clock

from backend.errors import ExternalChannelError

try:  # pragma: no cover - jnius is only available on Android
    from jnius import autoclass, cast, JavaException  # type: ignore
except Exception:  # pragma: no cover - allow import on non-Android
    autoclass = cast = None  # type: ignore

    class JavaException(Exception):
        """Fallback Java exception when running off-device."""

try:  # pragma: no cover - Android-only classes
    PythonActivity = autoclass("org.kivy.android.PythonActivity")
    Context = autoclass("android.content.Context")
    NotificationBuilder = autoclass("android.app.Notification$Builder")
    NotificationChannel = autoclass("android.app.NotificationChannel")
    NotificationManager = autoclass("android.app.NotificationManager")
    AndroidString = autoclass("java.lang.String")
    HAVE_ANDROID = True
except Exception:  # pragma: no cover - running on non-Android platform
    PythonActivity = Context = NotificationBuilder = None  # type: ignore
    NotificationChannel = NotificationManager = AndroidString = None  # type: ignore
    HAVE_ANDROID = False

CHANNEL_ID = "rest_timer"
CHANNEL_NAME = "Rest timer"

_notification_ids = itertools.count(1000)


def _require_android() -> None:
    """Raise ``ExternalChannelError`` if Android classes are unavailable."""

    if not HAVE_ANDROID:
        raise ExternalChannelError("Android APIs unavailable")


def _char_sequence(text: str):  # pragma: no cover - Android only
    return cast("java.lang.CharSequence", AndroidString(text))


def _notification_manager():  # pragma: no cover - Android only
    activity = PythonActivity.mActivity
    manager = activity.getSystemService(Context.NOTIFICATION_SERVICE)
    channel = NotificationChannel(
        CHANNEL_ID,
        _char_sequence(CHANNEL_NAME),
        NotificationManager.IMPORTANCE_DEFAULT,
    )
    manager.createNotificationChannel(channel)
    return activity, manager


def _builder(activity, title: str, body: str):  # pragma: no cover - Android only
    builder = NotificationBuilder(activity, CHANNEL_ID)
    builder.setContentTitle(_char_sequence(title))
    builder.setContentText(_char_sequence(body))
    builder.setSmallIcon(activity.getApplicationInfo().icon)
    return builder


def post_android_notification(title: str, body: str) -> int:
    """Show a regular notification and return its id."""

    _require_android()
    try:  # pragma: no cover - Android only
        activity, manager = _notification_manager()
        builder = _builder(activity, title, body)
        builder.setAutoCancel(True)
        ident = next(_notification_ids)
        manager.notify(ident, builder.build())
    except JavaException as exc:  # pragma: no cover - Android only
        raise ExternalChannelError(str(exc)) from exc
    return ident


class LiveDisplay:
    """Always visible countdown surface."""

    def register(self, start_time: float, duration: float) -> Any:
        """Show a countdown running from ``start_time`` for ``duration``.

        Returns a handle accepted by :meth:`dismiss`.
        """
        raise NotImplementedError

    def dismiss(self, handle: Any) -> None:
        """Remove the countdown identified by ``handle`` immediately."""
        raise NotImplementedError


class AndroidLiveDisplay(LiveDisplay):
    """Ongoing notification with a count-down chronometer."""

    def register(self, start_time: float, duration: float) -> int:
        _require_android()
        try:  # pragma: no cover - Android only
            activity, manager = _notification_manager()
            builder = _builder(activity, "Rest", f"{int(duration)} seconds rest")
            builder.setWhen(int((start_time + duration) * 1000))
            builder.setUsesChronometer(True)
            builder.setChronometerCountDown(True)
            builder.setOngoing(True)
            ident = next(_notification_ids)
            manager.notify(ident, builder.build())
        except JavaException as exc:  # pragma: no cover - Android only
            raise ExternalChannelError(str(exc)) from exc
        logging.info("Started live countdown %s", ident)
        return ident

    def dismiss(self, handle: int) -> None:
        _require_android()
        try:  # pragma: no cover - Android only
            _, manager = _notification_manager()
            manager.cancel(handle)
        except JavaException as exc:  # pragma: no cover - Android only
            raise ExternalChannelError(str(exc)) from exc
        logging.info("Dismissed live countdown %s", handle)


class Notifier:
    """Schedules one-shot local notifications by identifier."""

    def schedule(self, ident: str, fire_after: float, title: str, body: str) -> None:
        raise NotImplementedError

    def cancel(self, ident: str) -> None:
        raise NotImplementedError

    def deliver_pending(self, ident: str) -> None:
        """Deliver the notification scheduled as ``ident`` right away."""
        raise NotImplementedError


class ClockNotifier(Notifier):
    """Deliver notifications from the Kivy clock.

    Scheduling an identifier that is already pending replaces it.  ``post``
    receives ``(title, body)`` when the notification fires and defaults to
    :func:`post_android_notification`.  The clock does not run while the app
    is paused, so the owner calls :meth:`deliver_pending` once it notices a
    notification is overdue.
    """

    def __init__(
        self,
        post: Callable[[str, str], Any] | None = None,
        clock=Clock,
    ) -> None:
        self._post = post or post_android_notification
        self._clock = clock
        self._events: dict[str, Any] = {}
        self._messages: dict[str, tuple[str, str]] = {}

    def pending(self) -> list[str]:
        return list(self._events)

    def schedule(self, ident: str, fire_after: float, title: str, body: str) -> None:
        self.cancel(ident)
        self._messages[ident] = (title, body)
        self._events[ident] = self._clock.schedule_once(
            partial(self._fire, ident, title, body), max(0, fire_after)
        )
        logging.info("Scheduled notification %r in %.0f seconds", ident, fire_after)

    def cancel(self, ident: str) -> None:
        event = self._events.pop(ident, None)
        self._messages.pop(ident, None)
        if event is not None:
            event.cancel()

    def deliver_pending(self, ident: str) -> None:
        message = self._messages.get(ident)
        if message is None:
            return
        self.cancel(ident)
        self._fire(ident, *message)

    def _fire(self, ident: str, title: str, body: str, dt=None) -> None:
        self._events.pop(ident, None)
        self._messages.pop(ident, None)
        try:
            self._post(title, body)
        except Exception:
            logging.exception("Notification %r could not be delivered", ident)
