from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, Date, DateTime, Integer, Text

# SQLite only autoincrements an INTEGER PRIMARY KEY.
BigIntId = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


class BookingStatus(StrEnum):
    BOOKED = "booked"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


ACTIVE_BOOKING_STATUSES = (BookingStatus.BOOKED, BookingStatus.DELIVERED)


class AttemptReason(StrEnum):
    SUCCESS = "success"
    INVALID_TIME = "invalid_time"
    ALREADY_BOOKED = "already_booked"
    SLOTS_FULL = "slots_full"
    RACE_LOST = "race_lost"
    SYSTEM_ERROR = "system_error"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class DaySlot(Base):
    __tablename__ = "free_jar_slots"
    __table_args__ = (
        UniqueConstraint("slot_date", name="uq_free_jar_slots_date"),
        CheckConstraint("capacity >= 1", name="chk_free_jar_slots_capacity"),
        CheckConstraint("reserved >= 0 AND reserved <= capacity", name="chk_free_jar_slots_reserved"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class FreeJarBooking(Base):
    __tablename__ = "free_jar_bookings"
    __table_args__ = (
        # active_date mirrors slot_date only while booked/delivered, so this is
        # "one live booking per customer per day" on every backend.
        UniqueConstraint("customer_id", "active_date", name="uq_free_jar_bookings_customer_day"),
        Index("idx_free_jar_bookings_customer", "customer_id"),
        Index("idx_free_jar_bookings_date", "slot_date"),
        Index("idx_free_jar_bookings_assistant", "delivery_assistant_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    village_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _str_enum(BookingStatus),
        nullable=False,
        default=BookingStatus.BOOKED,
    )
    active_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    delivery_assistant_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class BookingAttempt(Base):
    __tablename__ = "free_jar_booking_attempts"
    __table_args__ = (
        Index("idx_free_jar_attempts_date", "slot_date"),
        Index("idx_free_jar_attempts_customer", "customer_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reason: Mapped[AttemptReason] = mapped_column(_str_enum(AttemptReason), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
