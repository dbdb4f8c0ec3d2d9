from fastapi import APIRouter, Depends, HTTPException, Path, status

from ..deps import get_booking_window, get_clock, get_current_user_id, get_uow
from ..domain.errors import BookingNotFoundError, ClaimConflictError
from ..domain.repositories import BookingUnitOfWork
from ..domain.window import BookingWindow
from ..models import BookingStatus
from ..schemas import AssistantDeliveriesRead, DeliveryComplete, FreeJarBookingRead
from ..usecases import deliveries as delivery_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import Clock

router = APIRouter(prefix="/assistant/free-jar", tags=["free-jar-deliveries"])


@router.get("/deliveries", response_model=AssistantDeliveriesRead)
async def list_deliveries(
    uow: BookingUnitOfWork = Depends(get_uow),
    assistant_id: int = Depends(get_current_user_id),
    window: BookingWindow = Depends(get_booking_window),
) -> AssistantDeliveriesRead:
    result = await delivery_usecase.deliveries_for_assistant(uow, assistant_id=assistant_id)
    return AssistantDeliveriesRead(
        unclaimed=[FreeJarBookingRead.from_db(booking=b, tz=window.tz) for b in result.unclaimed],
        assigned=[FreeJarBookingRead.from_db(booking=b, tz=window.tz) for b in result.assigned],
    )


@router.post("/deliveries/{booking_id}/claim", response_model=FreeJarBookingRead)
async def claim_delivery(
    booking_id: int = Path(..., ge=1),
    uow: BookingUnitOfWork = Depends(get_uow),
    assistant_id: int = Depends(get_current_user_id),
    window: BookingWindow = Depends(get_booking_window),
    clock: Clock = Depends(get_clock),
) -> FreeJarBookingRead:
    try:
        booking = await delivery_usecase.claim(uow, booking_id=booking_id, assistant_id=assistant_id, now=clock.now())
    except BookingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")
    except ClaimConflictError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="booking already claimed or closed")

    try:
        emit_audit_log(
            action="free_jar.claimed",
            initiator="assistant",
            customer_id=booking.customer_id,
            slot_date=booking.slot_date,
            booking_id=booking.id,
            assistant_id=assistant_id,
            status_from=BookingStatus.BOOKED,
            status_to=booking.status,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc

    return FreeJarBookingRead.from_db(booking=booking, tz=window.tz)


@router.post("/deliveries/{booking_id}/deliver", response_model=FreeJarBookingRead)
async def deliver(
    payload: DeliveryComplete,
    booking_id: int = Path(..., ge=1),
    uow: BookingUnitOfWork = Depends(get_uow),
    assistant_id: int = Depends(get_current_user_id),
    window: BookingWindow = Depends(get_booking_window),
    clock: Clock = Depends(get_clock),
) -> FreeJarBookingRead:
    try:
        booking = await delivery_usecase.mark_delivered(
            uow,
            booking_id=booking_id,
            assistant_id=assistant_id,
            notes=payload.notes,
            now=clock.now(),
        )
    except BookingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")
    except ClaimConflictError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="booking not claimed by this assistant")

    try:
        emit_audit_log(
            action="free_jar.delivered",
            initiator="assistant",
            customer_id=booking.customer_id,
            slot_date=booking.slot_date,
            booking_id=booking.id,
            assistant_id=assistant_id,
            status_from=BookingStatus.BOOKED,
            status_to=booking.status,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc

    return FreeJarBookingRead.from_db(booking=booking, tz=window.tz)
