from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.window import BookingWindow
from .infrastructure.repositories import SqlAlchemyBookingUnitOfWork
from .usecases.bookings import FailureDelay, jittered_delay
from .utils.time import Clock, SystemClock


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-Id") from exc
    if user_id < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-Id")
    return user_id


async def get_uow(session: AsyncSession = Depends(get_session)) -> SqlAlchemyBookingUnitOfWork:
    return SqlAlchemyBookingUnitOfWork(session)


def get_booking_window() -> BookingWindow:
    return BookingWindow.from_settings(get_settings())


def get_clock(window: BookingWindow = Depends(get_booking_window)) -> Clock:
    return SystemClock(window.tz)


def get_failure_delay() -> FailureDelay:
    settings = get_settings()
    return jittered_delay(settings.failure_delay_min_seconds, settings.failure_delay_max_seconds)


def get_daily_capacity() -> int:
    return get_settings().daily_free_jars
