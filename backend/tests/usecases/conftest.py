from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Callable, Optional

import pytest
from freejar.models import AttemptReason, BookingAttempt, BookingStatus, DaySlot, FreeJarBooking
from sqlalchemy.exc import IntegrityError


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FakeSlotRepo:
    def __init__(self, *, reserved: int = 0, is_active: bool = True, lose_race: bool = False) -> None:
        self.initial_reserved = reserved
        self.ensure_error: Optional[Exception] = None
        self.is_active = is_active
        self.lose_race = lose_race
        self.slots: dict[date, DaySlot] = {}
        self.reserve_calls = 0

    async def get(self, slot_date: date, *, for_update: bool = False) -> Optional[DaySlot]:
        return self.slots.get(slot_date)

    async def ensure_day_slot(self, slot_date: date, *, capacity: int) -> DaySlot:
        if self.ensure_error is not None:
            raise self.ensure_error
        if slot_date not in self.slots:
            now = _utc_now_naive()
            self.slots[slot_date] = DaySlot(
                id=len(self.slots) + 1,
                slot_date=slot_date,
                capacity=capacity,
                reserved=self.initial_reserved,
                is_active=self.is_active,
                created_at=now,
                updated_at=now,
            )
        return self.slots[slot_date]

    async def try_reserve(self, slot_date: date) -> bool:
        self.reserve_calls += 1
        slot = self.slots[slot_date]
        if self.lose_race or slot.reserved >= slot.capacity:
            return False
        slot.reserved += 1
        return True


class FakeBookingRepo:
    def __init__(self, *, fail_create_with: Optional[Exception] = None) -> None:
        self.rows: list[FreeJarBooking] = []
        self.fail_create_with = fail_create_with
        self.has_booked_error: Optional[Exception] = None

    def add(
        self,
        *,
        customer_id: int,
        slot_date: date,
        status: BookingStatus = BookingStatus.BOOKED,
        assistant_id: Optional[int] = None,
    ) -> FreeJarBooking:
        now = _utc_now_naive()
        booking = FreeJarBooking(
            id=len(self.rows) + 1,
            customer_id=customer_id,
            slot_date=slot_date,
            village_id=7,
            status=status,
            active_date=slot_date if status in (BookingStatus.BOOKED, BookingStatus.DELIVERED) else None,
            delivery_assistant_id=assistant_id,
            created_at=now,
            updated_at=now,
        )
        self.rows.append(booking)
        return booking

    async def has_booked(self, customer_id: int, slot_date: date) -> bool:
        if self.has_booked_error is not None:
            raise self.has_booked_error
        return any(
            b.customer_id == customer_id
            and b.slot_date == slot_date
            and b.status in (BookingStatus.BOOKED, BookingStatus.DELIVERED)
            for b in self.rows
        )

    async def create(
        self,
        *,
        customer_id: int,
        slot_date: date,
        village_id: int,
        now: datetime,
    ) -> FreeJarBooking:
        if self.fail_create_with is not None:
            raise self.fail_create_with
        booking = self.add(customer_id=customer_id, slot_date=slot_date)
        booking.village_id = village_id
        booking.created_at = booking.updated_at = now.astimezone(timezone.utc).replace(tzinfo=None)
        return booking

    async def get(self, booking_id: int) -> Optional[FreeJarBooking]:
        return next((b for b in self.rows if b.id == booking_id), None)

    async def list_by_customer(self, customer_id: int) -> list[FreeJarBooking]:
        rows = [b for b in self.rows if b.customer_id == customer_id]
        return sorted(rows, key=lambda b: (b.slot_date, b.created_at, b.id), reverse=True)

    async def list_unclaimed(self) -> list[FreeJarBooking]:
        return [b for b in self.rows if b.status == BookingStatus.BOOKED and b.delivery_assistant_id is None]

    async def list_by_assistant(self, assistant_id: int) -> list[FreeJarBooking]:
        return [b for b in self.rows if b.delivery_assistant_id == assistant_id]

    async def claim(self, booking_id: int, assistant_id: int, *, now: datetime) -> bool:
        booking = await self.get(booking_id)
        if booking is None or booking.status != BookingStatus.BOOKED or booking.delivery_assistant_id is not None:
            return False
        booking.delivery_assistant_id = assistant_id
        return True

    async def mark_delivered(
        self,
        booking_id: int,
        assistant_id: int,
        *,
        notes: Optional[str],
        now: datetime,
    ) -> bool:
        booking = await self.get(booking_id)
        if booking is None or booking.status != BookingStatus.BOOKED or booking.delivery_assistant_id != assistant_id:
            return False
        booking.status = BookingStatus.DELIVERED
        booking.delivered_at = now.astimezone(timezone.utc).replace(tzinfo=None)
        booking.notes = notes or ""
        return True


class FakeAttemptRepo:
    def __init__(self) -> None:
        self.rows: list[BookingAttempt] = []

    async def log(
        self,
        *,
        customer_id: int,
        slot_date: date,
        success: bool,
        reason: AttemptReason,
    ) -> BookingAttempt:
        attempt = BookingAttempt(
            id=len(self.rows) + 1,
            customer_id=customer_id,
            slot_date=slot_date,
            success=success,
            reason=reason,
            created_at=_utc_now_naive(),
        )
        self.rows.append(attempt)
        return attempt

    @property
    def reasons(self) -> list[AttemptReason]:
        return [a.reason for a in self.rows]


class FakeUnitOfWork:
    """Mimics transaction rollback for slot counters, bookings and attempts."""

    def __init__(self, slots: FakeSlotRepo, bookings: FakeBookingRepo, attempts: FakeAttemptRepo) -> None:
        self.slots = slots
        self.bookings = bookings
        self.attempts = attempts
        self.transactions = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[None]:
        self.transactions += 1
        reserved = {d: s.reserved for d, s in self.slots.slots.items()}
        n_bookings = len(self.bookings.rows)
        n_attempts = len(self.attempts.rows)
        try:
            yield None
        except BaseException:
            self.rollbacks += 1
            for d, slot in self.slots.slots.items():
                slot.reserved = reserved.get(d, self.slots.initial_reserved)
            del self.bookings.rows[n_bookings:]
            del self.attempts.rows[n_attempts:]
            raise


UowFactory = Callable[..., FakeUnitOfWork]


@pytest.fixture
def make_uow() -> UowFactory:
    def _make(
        *,
        reserved: int = 0,
        is_active: bool = True,
        lose_race: bool = False,
        fail_create_with: Optional[Exception] = None,
    ) -> FakeUnitOfWork:
        return FakeUnitOfWork(
            FakeSlotRepo(reserved=reserved, is_active=is_active, lose_race=lose_race),
            FakeBookingRepo(fail_create_with=fail_create_with),
            FakeAttemptRepo(),
        )

    return _make


@pytest.fixture
def duplicate_insert_error() -> IntegrityError:
    return IntegrityError(None, None, Exception("duplicate key"))  # type: ignore[arg-type]
