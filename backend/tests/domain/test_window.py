from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from freejar.config import Settings
from freejar.domain.window import BookingWindow

IST = ZoneInfo("Asia/Kolkata")


def _window(hour: int = 8, minute: int = 0, duration: int = 1) -> BookingWindow:
    return BookingWindow(hour=hour, minute=minute, duration_minutes=duration, tz=IST)


def _ist(hour: int, minute: int, second: int = 0, day: int = 15) -> datetime:
    return datetime(2025, 1, day, hour, minute, second, tzinfo=IST)


def test_inside_window_at_open_and_half_minute() -> None:
    window = _window()
    assert window.is_within_window(_ist(8, 0, 0))
    assert window.is_within_window(_ist(8, 0, 30))
    assert window.is_within_window(_ist(8, 0, 59))


def test_outside_window_before_and_after() -> None:
    window = _window()
    assert not window.is_within_window(_ist(7, 59, 59))
    assert not window.is_within_window(_ist(8, 1, 0))
    assert not window.is_within_window(_ist(9, 0, 0))


def test_window_with_offset_minute_and_longer_duration() -> None:
    window = _window(hour=14, minute=30, duration=5)
    assert not window.is_within_window(_ist(14, 29, 59))
    assert window.is_within_window(_ist(14, 34, 59))
    assert not window.is_within_window(_ist(14, 35, 0))


def test_window_is_evaluated_in_business_timezone() -> None:
    window = _window()
    # 02:30 UTC == 08:00 IST
    assert window.is_within_window(datetime(2025, 1, 15, 2, 30, tzinfo=timezone.utc))
    assert not window.is_within_window(datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc))


def test_seconds_until_window_one_second_before_open() -> None:
    assert _window().seconds_until_next_window(_ist(7, 59, 59)) == 1


def test_seconds_until_window_after_close_points_to_tomorrow() -> None:
    assert _window().seconds_until_next_window(_ist(8, 1, 0)) == 24 * 3600 - 60


def test_seconds_until_window_during_window_points_to_tomorrow() -> None:
    assert _window().seconds_until_next_window(_ist(8, 0, 30)) == 24 * 3600 - 30


def test_seconds_until_window_rolls_over_midnight() -> None:
    window = _window()
    before_midnight = window.seconds_until_next_window(_ist(23, 59, 59))
    after_midnight = window.seconds_until_next_window(_ist(0, 0, 0, day=16))
    assert before_midnight == 8 * 3600 + 1
    assert after_midnight == 8 * 3600
    assert after_midnight < before_midnight


def test_seconds_until_window_decreases_monotonically() -> None:
    window = _window()
    start = _ist(6, 0, 0)
    previous = window.seconds_until_next_window(start)
    for step in range(1, 200):
        current = window.seconds_until_next_window(start + timedelta(seconds=step * 17))
        assert current < previous
        previous = current


def test_business_date_uses_local_calendar_day() -> None:
    window = _window()
    # 20:00 UTC on the 14th is 01:30 IST on the 15th
    assert window.business_date(datetime(2025, 1, 14, 20, 0, tzinfo=timezone.utc)).day == 15


def test_naive_datetime_rejected() -> None:
    with pytest.raises(ValueError):
        _window().is_within_window(datetime(2025, 1, 15, 8, 0))


@pytest.mark.parametrize(
    ("hour", "minute", "expected"),
    [(8, 0, "8:00 AM"), (0, 5, "12:05 AM"), (12, 0, "12:00 PM"), (17, 45, "5:45 PM")],
)
def test_display_time(hour: int, minute: int, expected: str) -> None:
    assert _window(hour=hour, minute=minute).display_time() == expected


def test_from_settings() -> None:
    window = BookingWindow.from_settings(
        Settings(booking_hour=9, booking_minute=15, booking_window_minutes=3, booking_timezone="UTC")
    )
    assert (window.hour, window.minute, window.duration_minutes) == (9, 15, 3)
    assert window.tz == ZoneInfo("UTC")
