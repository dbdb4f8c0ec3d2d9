from ..models import AttemptReason


class BookingError(Exception):
    """Base for admission rejections. `reason` is what the attempt log records."""

    reason: AttemptReason = AttemptReason.SYSTEM_ERROR
    transient: bool = True


class OutsideWindowError(BookingError):
    reason = AttemptReason.INVALID_TIME
    transient = False


class AlreadyBookedError(BookingError):
    reason = AttemptReason.ALREADY_BOOKED
    transient = False


class CapacityExhaustedError(BookingError):
    reason = AttemptReason.SLOTS_FULL


class ConcurrencyLostError(BookingError):
    reason = AttemptReason.RACE_LOST


class SystemFailureError(BookingError):
    reason = AttemptReason.SYSTEM_ERROR


class BookingNotFoundError(Exception):
    pass


class ClaimConflictError(Exception):
    pass
