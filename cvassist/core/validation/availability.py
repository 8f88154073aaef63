"""UK business-hours availability window."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from ..config.settings import WindowSettings

DEFERRAL_MESSAGE = (
    "Our assistant is available during UK business hours "
    "(Monday-Friday, 08:00-20:00 GMT/BST). Please return then for a full response."
)


class AvailabilityWindow:
    """Pure check of a timestamp against the configured window.

    A bypass token opens the window when it contains the configured phrase
    (case-insensitive). Without a configured phrase no bypass is possible.
    """

    def __init__(self, settings: WindowSettings | None = None):
        self.settings = settings or WindowSettings()
        self.tz = ZoneInfo(self.settings.timezone)

    def bypassed(self, bypass_token: str | None) -> bool:
        phrase = self.settings.bypass_phrase
        if not phrase or not bypass_token:
            return False
        return phrase.lower() in bypass_token.lower()

    def is_open(self, now: datetime | None = None, bypass_token: str | None = None) -> bool:
        if not self.settings.enabled or self.bypassed(bypass_token):
            return True

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(self.tz)

        if self.settings.weekdays_only and local.weekday() >= 5:
            return False
        return self.settings.start_hour <= local.hour < self.settings.end_hour

    @property
    def message(self) -> str:
        return DEFERRAL_MESSAGE
