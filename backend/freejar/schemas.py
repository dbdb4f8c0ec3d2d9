from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_serializer

from .models import BookingStatus, FreeJarBooking
from .usecases.bookings import TodayStatus
from .utils.time import utc_naive_to_local


class FreeJarBookingCreate(BaseModel):
    village_id: int = Field(ge=1)


class DeliveryComplete(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=1000)


class FreeJarBookingRead(BaseModel):
    booking_id: int
    customer_id: int
    slot_date: date
    village_id: int
    status: BookingStatus
    booked_at: datetime
    delivery_assistant_id: Optional[int] = None
    delivered_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_serializer("booked_at", "delivered_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, *, booking: FreeJarBooking, tz: ZoneInfo) -> "FreeJarBookingRead":
        return cls(
            booking_id=booking.id,
            customer_id=booking.customer_id,
            slot_date=booking.slot_date,
            village_id=booking.village_id,
            status=booking.status,
            booked_at=utc_naive_to_local(booking.created_at, tz),
            delivery_assistant_id=booking.delivery_assistant_id,
            delivered_at=utc_naive_to_local(booking.delivered_at, tz) if booking.delivered_at else None,
            notes=booking.notes,
        )


class BookingAttemptResult(BaseModel):
    success: bool
    booking: Optional[FreeJarBookingRead] = None
    error: Optional[str] = None
    is_transient_failure_hint: bool = False


class BookingStatusRead(BaseModel):
    is_window_open: bool
    already_booked: bool
    seconds_until_window: int
    business_date: date
    opens_at: str

    @classmethod
    def from_status(cls, status: TodayStatus) -> "BookingStatusRead":
        return cls(
            is_window_open=status.is_window_open,
            already_booked=status.already_booked,
            seconds_until_window=status.seconds_until_window,
            business_date=status.business_date,
            opens_at=status.opens_at,
        )


class AssistantDeliveriesRead(BaseModel):
    unclaimed: List[FreeJarBookingRead]
    assigned: List[FreeJarBookingRead]
