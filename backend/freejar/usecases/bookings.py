import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain.errors import (
    AlreadyBookedError,
    BookingError,
    ConcurrencyLostError,
    OutsideWindowError,
    SystemFailureError,
)
from ..domain.repositories import BookingUnitOfWork
from ..domain.services import DaySnapshot, check_capacity
from ..domain.window import BookingWindow
from ..models import AttemptReason, FreeJarBooking

logger = logging.getLogger(__name__)

FailureDelay = Callable[[], Awaitable[None]]


def jittered_delay(low: float, high: float) -> FailureDelay:
    """Sleep a random time in [low, high] so a full day looks like a slow network."""

    async def _sleep() -> None:
        await asyncio.sleep(random.uniform(low, high))

    return _sleep


async def no_delay() -> None:
    return None


@dataclass(frozen=True)
class TodayStatus:
    is_window_open: bool
    already_booked: bool
    seconds_until_window: int
    business_date: date
    opens_at: str


async def attempt_booking(
    uow: BookingUnitOfWork,
    *,
    customer_id: int,
    village_id: int,
    now: datetime,
    window: BookingWindow,
    capacity: int,
    delay: FailureDelay = no_delay,
) -> FreeJarBooking:
    today = window.business_date(now)

    if not window.is_within_window(now):
        error = OutsideWindowError("booking only available during the booking window")
        await _record_rejection(uow, customer_id=customer_id, slot_date=today, error=error)
        raise error

    try:
        async with uow.begin():
            if await uow.bookings.has_booked(customer_id, today):
                raise AlreadyBookedError("already booked today")

            slot = await uow.slots.ensure_day_slot(today, capacity=capacity)
            check_capacity(DaySnapshot(is_active=slot.is_active, capacity=slot.capacity, reserved=slot.reserved))

            if not await uow.slots.try_reserve(today):
                raise ConcurrencyLostError("slot taken by a concurrent admission")

            try:
                booking = await uow.bookings.create(
                    customer_id=customer_id,
                    slot_date=today,
                    village_id=village_id,
                    now=now,
                )
            except IntegrityError as exc:
                # Same customer admitted concurrently; leaving the block rolls the reserve back.
                raise AlreadyBookedError("already booked today") from exc

            await uow.attempts.log(
                customer_id=customer_id,
                slot_date=today,
                success=True,
                reason=AttemptReason.SUCCESS,
            )
    except SystemFailureError as exc:
        logger.exception("free jar admission failed customer_id=%s date=%s", customer_id, today)
        await _record_rejection(uow, customer_id=customer_id, slot_date=today, error=exc)
        await delay()
        raise
    except BookingError as exc:
        await _record_rejection(uow, customer_id=customer_id, slot_date=today, error=exc)
        if exc.transient:
            await delay()
        raise
    except SQLAlchemyError as exc:
        logger.exception("free jar admission failed customer_id=%s date=%s", customer_id, today)
        failure = SystemFailureError("persistence failure during admission")
        await _record_rejection(uow, customer_id=customer_id, slot_date=today, error=failure)
        await delay()
        raise failure from exc

    logger.info("free jar booked customer_id=%s date=%s booking_id=%s", customer_id, today, booking.id)
    return booking


async def _record_rejection(
    uow: BookingUnitOfWork,
    *,
    customer_id: int,
    slot_date: date,
    error: BookingError,
) -> None:
    logger.info(
        "free jar rejected customer_id=%s date=%s reason=%s",
        customer_id,
        slot_date,
        error.reason.value,
    )
    try:
        async with uow.begin():
            await uow.attempts.log(
                customer_id=customer_id,
                slot_date=slot_date,
                success=False,
                reason=error.reason,
            )
    except SQLAlchemyError:
        # The rejection itself still goes back to the caller.
        logger.exception("failed to record booking attempt customer_id=%s reason=%s", customer_id, error.reason.value)


async def status_for_today(
    uow: BookingUnitOfWork,
    *,
    customer_id: int,
    now: datetime,
    window: BookingWindow,
) -> TodayStatus:
    today = window.business_date(now)
    return TodayStatus(
        is_window_open=window.is_within_window(now),
        already_booked=await uow.bookings.has_booked(customer_id, today),
        seconds_until_window=window.seconds_until_next_window(now),
        business_date=today,
        opens_at=window.display_time(),
    )


async def history(uow: BookingUnitOfWork, *, customer_id: int) -> list[FreeJarBooking]:
    return await uow.bookings.list_by_customer(customer_id)
