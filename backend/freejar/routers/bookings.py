from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..deps import (
    get_booking_window,
    get_clock,
    get_current_user_id,
    get_daily_capacity,
    get_failure_delay,
    get_uow,
)
from ..domain.errors import AlreadyBookedError, BookingError, OutsideWindowError
from ..domain.repositories import BookingUnitOfWork
from ..domain.services import describe_rejection
from ..domain.window import BookingWindow
from ..models import BookingStatus
from ..schemas import BookingAttemptResult, BookingStatusRead, FreeJarBookingCreate, FreeJarBookingRead
from ..usecases import bookings as booking_usecase
from ..usecases.bookings import FailureDelay
from ..utils.audit_log import emit_audit_log
from ..utils.time import Clock

router = APIRouter(prefix="", tags=["free-jar"])


def _rejection_status(error: BookingError) -> int:
    if isinstance(error, OutsideWindowError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(error, AlreadyBookedError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_503_SERVICE_UNAVAILABLE


@router.post("/free-jar/bookings", response_model=BookingAttemptResult, status_code=status.HTTP_201_CREATED)
async def book_free_jar(
    payload: FreeJarBookingCreate,
    response: Response,
    uow: BookingUnitOfWork = Depends(get_uow),
    customer_id: int = Depends(get_current_user_id),
    window: BookingWindow = Depends(get_booking_window),
    clock: Clock = Depends(get_clock),
    capacity: int = Depends(get_daily_capacity),
    delay: FailureDelay = Depends(get_failure_delay),
) -> BookingAttemptResult:
    now = clock.now()
    try:
        booking = await booking_usecase.attempt_booking(
            uow,
            customer_id=customer_id,
            village_id=payload.village_id,
            now=now,
            window=window,
            capacity=capacity,
            delay=delay,
        )
    except BookingError as exc:
        public = describe_rejection(exc)
        try:
            emit_audit_log(
                action="free_jar.rejected",
                initiator="customer",
                customer_id=customer_id,
                slot_date=window.business_date(now),
                village_id=payload.village_id,
                reason=exc.reason,
                extra={"public_message": public.message},
            )
        except RuntimeError as log_exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from log_exc
        response.status_code = _rejection_status(exc)
        return BookingAttemptResult(success=False, error=public.message, is_transient_failure_hint=public.transient)

    try:
        emit_audit_log(
            action="free_jar.booked",
            initiator="customer",
            customer_id=customer_id,
            slot_date=booking.slot_date,
            booking_id=booking.id,
            village_id=booking.village_id,
            status_to=BookingStatus.BOOKED,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc

    return BookingAttemptResult(success=True, booking=FreeJarBookingRead.from_db(booking=booking, tz=window.tz))


@router.get("/free-jar/status", response_model=BookingStatusRead)
async def booking_status(
    uow: BookingUnitOfWork = Depends(get_uow),
    customer_id: int = Depends(get_current_user_id),
    window: BookingWindow = Depends(get_booking_window),
    clock: Clock = Depends(get_clock),
) -> BookingStatusRead:
    today = await booking_usecase.status_for_today(uow, customer_id=customer_id, now=clock.now(), window=window)
    return BookingStatusRead.from_status(today)


@router.get("/me/free-jar/bookings", response_model=List[FreeJarBookingRead])
async def list_my_free_jar_bookings(
    uow: BookingUnitOfWork = Depends(get_uow),
    customer_id: int = Depends(get_current_user_id),
    window: BookingWindow = Depends(get_booking_window),
) -> list[FreeJarBookingRead]:
    rows = await booking_usecase.history(uow, customer_id=customer_id)
    return [FreeJarBookingRead.from_db(booking=booking, tz=window.tz) for booking in rows]
