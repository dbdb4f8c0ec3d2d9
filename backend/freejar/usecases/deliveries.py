import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..domain.errors import BookingNotFoundError, ClaimConflictError
from ..domain.repositories import BookingUnitOfWork
from ..models import FreeJarBooking

logger = logging.getLogger(__name__)


@dataclass
class AssistantDeliveries:
    unclaimed: list[FreeJarBooking] = field(default_factory=list)
    assigned: list[FreeJarBooking] = field(default_factory=list)


async def pending_for_assistants(uow: BookingUnitOfWork) -> list[FreeJarBooking]:
    return await uow.bookings.list_unclaimed()


async def my_assignments(uow: BookingUnitOfWork, *, assistant_id: int) -> list[FreeJarBooking]:
    return await uow.bookings.list_by_assistant(assistant_id)


async def deliveries_for_assistant(uow: BookingUnitOfWork, *, assistant_id: int) -> AssistantDeliveries:
    return AssistantDeliveries(
        unclaimed=await pending_for_assistants(uow),
        assigned=await my_assignments(uow, assistant_id=assistant_id),
    )


async def claim(
    uow: BookingUnitOfWork,
    *,
    booking_id: int,
    assistant_id: int,
    now: datetime,
) -> FreeJarBooking:
    """Assign an unclaimed `booked` entry to the assistant. First claimer wins."""
    async with uow.begin():
        claimed = await uow.bookings.claim(booking_id, assistant_id, now=now)
        booking = await uow.bookings.get(booking_id)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    if not claimed:
        raise ClaimConflictError("booking is not open for claiming")
    logger.info("free jar claimed booking_id=%s assistant_id=%s", booking_id, assistant_id)
    return booking


async def mark_delivered(
    uow: BookingUnitOfWork,
    *,
    booking_id: int,
    assistant_id: int,
    notes: str | None,
    now: datetime,
) -> FreeJarBooking:
    """booked -> delivered, only by the assistant holding the claim."""
    async with uow.begin():
        delivered = await uow.bookings.mark_delivered(booking_id, assistant_id, notes=notes, now=now)
        booking = await uow.bookings.get(booking_id)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    if not delivered:
        raise ClaimConflictError("booking is not claimed by this assistant or already delivered")
    logger.info("free jar delivered booking_id=%s assistant_id=%s", booking_id, assistant_id)
    return booking
