import logging

from kivymd.app import MDApp
from kivymd.uix.screen import MDScreen

from core import DEFAULT_DB_PATH, TrackerServices
from backend.channels import AndroidLiveDisplay, ClockNotifier, HAVE_ANDROID


class GymTrackerApp(MDApp):
    """Application shell owning the shared :class:`TrackerServices`."""

    services: TrackerServices | None = None

    def build(self):
        self.theme_cls.theme_style = "Dark"
        self.services = TrackerServices(
            DEFAULT_DB_PATH,
            live_display=AndroidLiveDisplay() if HAVE_ANDROID else None,
            notifier=ClockNotifier() if HAVE_ANDROID else None,
        )
        return MDScreen(name="home")

    def on_start(self):
        self.services.on_foreground()

    def on_pause(self):
        # keep the countdown state while in the background
        return True

    def on_resume(self):
        self.services.on_foreground()

    def on_stop(self):
        if self.services:
            self.services.close()
            logging.info("Closed workout ledger")


if __name__ == "__main__":
    GymTrackerApp().run()
