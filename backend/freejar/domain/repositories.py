from __future__ import annotations

from datetime import date, datetime
from typing import AsyncContextManager, Protocol

from ..models import AttemptReason, BookingAttempt, DaySlot, FreeJarBooking


class DaySlotRepository(Protocol):
    async def get(self, slot_date: date, *, for_update: bool = False) -> DaySlot | None: ...

    async def ensure_day_slot(self, slot_date: date, *, capacity: int) -> DaySlot: ...

    async def try_reserve(self, slot_date: date) -> bool: ...


class FreeJarBookingRepository(Protocol):
    async def has_booked(self, customer_id: int, slot_date: date) -> bool: ...

    async def create(
        self,
        *,
        customer_id: int,
        slot_date: date,
        village_id: int,
        now: datetime,
    ) -> FreeJarBooking: ...

    async def get(self, booking_id: int) -> FreeJarBooking | None: ...

    async def list_by_customer(self, customer_id: int) -> list[FreeJarBooking]: ...

    async def list_unclaimed(self) -> list[FreeJarBooking]: ...

    async def list_by_assistant(self, assistant_id: int) -> list[FreeJarBooking]: ...

    async def claim(self, booking_id: int, assistant_id: int, *, now: datetime) -> bool: ...

    async def mark_delivered(
        self,
        booking_id: int,
        assistant_id: int,
        *,
        notes: str | None,
        now: datetime,
    ) -> bool: ...


class BookingAttemptRepository(Protocol):
    async def log(
        self,
        *,
        customer_id: int,
        slot_date: date,
        success: bool,
        reason: AttemptReason,
    ) -> BookingAttempt: ...


class BookingUnitOfWork(Protocol):
    slots: DaySlotRepository
    bookings: FreeJarBookingRepository
    attempts: BookingAttemptRepository

    def begin(self) -> AsyncContextManager[object]: ...
