from dataclasses import dataclass

from .errors import (
    AlreadyBookedError,
    BookingError,
    CapacityExhaustedError,
    ConcurrencyLostError,
    OutsideWindowError,
)


@dataclass(frozen=True)
class DaySnapshot:
    is_active: bool
    capacity: int
    reserved: int


def check_capacity(snapshot: DaySnapshot) -> int:
    """
    Pure pre-check before the atomic reserve. Returns remaining capacity.
    Passing this check does not admit anyone; the conditional update does.
    """
    if not snapshot.is_active:
        raise CapacityExhaustedError("free jar promotion is not active today")
    remaining = snapshot.capacity - snapshot.reserved
    if remaining <= 0:
        raise CapacityExhaustedError("daily free jars exhausted")
    return remaining


@dataclass(frozen=True)
class PublicRejection:
    message: str
    transient: bool


# Customer-facing text. Scarcity is reported as a connectivity problem on
# purpose; the attempt log keeps the real reason.
_PUBLIC_MESSAGES: dict[type[BookingError], PublicRejection] = {
    OutsideWindowError: PublicRejection(
        "Free jar booking is only available during the daily booking window", transient=False
    ),
    AlreadyBookedError: PublicRejection("You have already booked your free jar for today", transient=False),
    CapacityExhaustedError: PublicRejection(
        "Network timeout. Please check your connection and try again.", transient=True
    ),
    ConcurrencyLostError: PublicRejection("Connection lost. Please try again later.", transient=True),
}

_FALLBACK = PublicRejection("Network error occurred. Please try again.", transient=True)


def describe_rejection(error: BookingError) -> PublicRejection:
    return _PUBLIC_MESSAGES.get(type(error), _FALLBACK)
