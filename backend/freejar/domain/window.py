from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..config import Settings
from ..utils.time import require_aware


@dataclass(frozen=True)
class BookingWindow:
    """
    Daily booking window, e.g. 08:00 for one minute in Asia/Kolkata.
    The window must sit inside a single hour; Settings enforces that.
    """

    hour: int
    minute: int
    duration_minutes: int
    tz: ZoneInfo

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookingWindow":
        return cls(
            hour=settings.booking_hour,
            minute=settings.booking_minute,
            duration_minutes=settings.booking_window_minutes,
            tz=ZoneInfo(settings.booking_timezone),
        )

    def local(self, now: datetime) -> datetime:
        return require_aware(now).astimezone(self.tz)

    def business_date(self, now: datetime) -> date:
        return self.local(now).date()

    def is_within_window(self, now: datetime) -> bool:
        local = self.local(now)
        if local.hour != self.hour:
            return False
        return self.minute <= local.minute < self.minute + self.duration_minutes

    def opens_at(self, day: date) -> datetime:
        return datetime.combine(day, time(self.hour, self.minute), tzinfo=self.tz)

    def seconds_until_next_window(self, now: datetime) -> int:
        local = self.local(now)
        next_start = self.opens_at(local.date())
        if local >= next_start:
            next_start = self.opens_at(local.date() + timedelta(days=1))
        # Aware datetimes sharing a tzinfo subtract as wall-clock times; go through UTC.
        delta = next_start.astimezone(timezone.utc) - local.astimezone(timezone.utc)
        return int(delta.total_seconds())

    def display_time(self) -> str:
        hour12 = self.hour % 12 or 12
        ampm = "PM" if self.hour >= 12 else "AM"
        return f"{hour12}:{self.minute:02d} {ampm}"
