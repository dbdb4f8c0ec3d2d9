from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, AsyncContextManager, List, Optional

from sqlalchemy import Insert, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import SystemFailureError
from ..domain.repositories import (
    BookingAttemptRepository,
    BookingUnitOfWork,
    DaySlotRepository,
    FreeJarBookingRepository,
)
from ..models import (
    ACTIVE_BOOKING_STATUSES,
    AttemptReason,
    BookingAttempt,
    BookingStatus,
    DaySlot,
    FreeJarBooking,
)
from ..utils.time import to_utc_naive


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name.lower()


class SqlAlchemyDaySlotRepository(DaySlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, slot_date: date, *, for_update: bool = False) -> DaySlot | None:
        stmt = select(DaySlot).where(DaySlot.slot_date == slot_date).execution_options(populate_existing=True)
        if for_update:
            # Locking read sees the latest committed row, not the transaction snapshot.
            stmt = stmt.with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, DaySlot) else None

    def _insert_if_absent(self, values: dict[str, Any]) -> Insert:
        dialect = _dialect_name(self.session)
        if dialect == "postgresql":
            return pg_insert(DaySlot).values(**values).on_conflict_do_nothing(index_elements=["slot_date"])
        stmt = insert(DaySlot).values(**values)
        if dialect in ("mysql", "mariadb"):
            return stmt.prefix_with("IGNORE")
        if dialect == "sqlite":
            return stmt.prefix_with("OR IGNORE")
        return stmt

    async def ensure_day_slot(self, slot_date: date, *, capacity: int) -> DaySlot:
        slot = await self.get(slot_date)
        if slot is not None:
            return slot

        now = _utc_now_naive()
        await self.session.execute(
            self._insert_if_absent(
                {
                    "slot_date": slot_date,
                    "capacity": capacity,
                    "reserved": 0,
                    "is_active": True,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        )
        # Either our insert or a concurrent creator's row.
        slot = await self.get(slot_date, for_update=True)
        if slot is None:
            raise SystemFailureError(f"day slot for {slot_date} missing after insert")
        return slot

    async def try_reserve(self, slot_date: date) -> bool:
        stmt = (
            update(DaySlot)
            .where(
                DaySlot.slot_date == slot_date,
                DaySlot.is_active.is_(True),
                DaySlot.reserved < DaySlot.capacity,
            )
            .values(reserved=DaySlot.reserved + 1, updated_at=_utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]


class SqlAlchemyFreeJarBookingRepository(FreeJarBookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def has_booked(self, customer_id: int, slot_date: date) -> bool:
        stmt = select(FreeJarBooking.id).where(
            FreeJarBooking.customer_id == customer_id,
            FreeJarBooking.slot_date == slot_date,
            FreeJarBooking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return await self.session.scalar(stmt.limit(1)) is not None

    async def create(
        self,
        *,
        customer_id: int,
        slot_date: date,
        village_id: int,
        now: datetime,
    ) -> FreeJarBooking:
        stamp = to_utc_naive(now)
        booking = FreeJarBooking(
            customer_id=customer_id,
            slot_date=slot_date,
            village_id=village_id,
            status=BookingStatus.BOOKED,
            active_date=slot_date,
            created_at=stamp,
            updated_at=stamp,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get(self, booking_id: int) -> Optional[FreeJarBooking]:
        stmt = (
            select(FreeJarBooking)
            .where(FreeJarBooking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, FreeJarBooking) else None

    async def list_by_customer(self, customer_id: int) -> List[FreeJarBooking]:
        stmt = (
            select(FreeJarBooking)
            .where(FreeJarBooking.customer_id == customer_id)
            .order_by(FreeJarBooking.slot_date.desc(), FreeJarBooking.created_at.desc(), FreeJarBooking.id.desc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_unclaimed(self) -> List[FreeJarBooking]:
        stmt = (
            select(FreeJarBooking)
            .where(
                FreeJarBooking.status == BookingStatus.BOOKED,
                FreeJarBooking.delivery_assistant_id.is_(None),
            )
            .order_by(FreeJarBooking.slot_date.asc(), FreeJarBooking.created_at.asc(), FreeJarBooking.id.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_by_assistant(self, assistant_id: int) -> List[FreeJarBooking]:
        stmt = (
            select(FreeJarBooking)
            .where(FreeJarBooking.delivery_assistant_id == assistant_id)
            .order_by(FreeJarBooking.slot_date.desc(), FreeJarBooking.created_at.desc(), FreeJarBooking.id.desc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def claim(self, booking_id: int, assistant_id: int, *, now: datetime) -> bool:
        stmt = (
            update(FreeJarBooking)
            .where(
                FreeJarBooking.id == booking_id,
                FreeJarBooking.status == BookingStatus.BOOKED,
                FreeJarBooking.delivery_assistant_id.is_(None),
            )
            .values(delivery_assistant_id=assistant_id, updated_at=to_utc_naive(now))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def mark_delivered(
        self,
        booking_id: int,
        assistant_id: int,
        *,
        notes: str | None,
        now: datetime,
    ) -> bool:
        stamp = to_utc_naive(now)
        stmt = (
            update(FreeJarBooking)
            .where(
                FreeJarBooking.id == booking_id,
                FreeJarBooking.status == BookingStatus.BOOKED,
                FreeJarBooking.delivery_assistant_id == assistant_id,
            )
            .values(status=BookingStatus.DELIVERED, delivered_at=stamp, notes=notes or "", updated_at=stamp)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]


class SqlAlchemyBookingAttemptRepository(BookingAttemptRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def log(
        self,
        *,
        customer_id: int,
        slot_date: date,
        success: bool,
        reason: AttemptReason,
    ) -> BookingAttempt:
        attempt = BookingAttempt(
            customer_id=customer_id,
            slot_date=slot_date,
            success=success,
            reason=reason,
            created_at=_utc_now_naive(),
        )
        self.session.add(attempt)
        await self.session.flush()
        return attempt


class SqlAlchemyBookingUnitOfWork(BookingUnitOfWork):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.slots = SqlAlchemyDaySlotRepository(session)
        self.bookings = SqlAlchemyFreeJarBookingRepository(session)
        self.attempts = SqlAlchemyBookingAttemptRepository(session)

    def begin(self) -> AsyncContextManager[object]:
        return self.session.begin()
