from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_restaurant, get_registry, get_session, get_slot_locks
from ..domain.errors import DomainError
from ..domain.identity import Identity
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyBranchRepository,
    SqlAlchemyOverrideRepository,
)
from ..locks import SlotLocks
from ..models import BookingStatus
from ..realtime.events import EventType
from ..realtime.notifier import publish_booking_event
from ..realtime.registry import ConnectionRegistry
from ..schemas import BookingActionRead, BookingRead, GuestBookingCreate
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import AuditLogError, emit_audit_log
from ..utils.http_errors import to_http_exception
from ..utils.time import to_local_naive
from .bookings import _audit_failed, _extract_version, perform_transition

router = APIRouter(prefix="/restaurant", tags=["restaurant"])


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_guest_booking(
    payload: GuestBookingCreate,
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
    registry: ConnectionRegistry = Depends(get_registry),
    locks: SlotLocks = Depends(get_slot_locks),
) -> BookingRead:
    """Walk-in or phone booking for a guest without an account; always confirmed."""
    starts_at = to_local_naive(payload.starts_at)
    try:
        async with locks.hold(payload.branch_id, starts_at):
            async with session.begin():
                booking, branch = await booking_usecase.create_booking(
                    SqlAlchemyBranchRepository(session),
                    SqlAlchemyBookingRepository(session),
                    SqlAlchemyOverrideRepository(session),
                    branch_id=payload.branch_id,
                    starts_at=starts_at,
                    party_size=payload.party_size,
                    user_id=None,
                    initial_status=BookingStatus.CONFIRMED,
                    acting_restaurant_id=restaurant.id,
                    guest_name=payload.guest_name,
                    guest_phone=payload.guest_phone,
                )
                emit_audit_log(
                    action="booking.created",
                    initiator="restaurant",
                    actor_id=restaurant.id,
                    branch_id=branch.id,
                    booking_id=booking.id,
                    party_size=booking.party_size,
                    starts_at=booking.starts_at,
                    status_to=booking.status,
                    version=booking.version,
                    extra={"guest": True},
                )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    except AuditLogError as exc:
        raise _audit_failed(exc) from exc

    await publish_booking_event(registry, EventType.NEW_BOOKING, booking, restaurant_id=branch.restaurant_id)
    return BookingRead.from_db(booking=booking, branch=branch)


@router.get("/bookings/{restaurant_id}", response_model=List[BookingRead])
async def list_restaurant_bookings(
    restaurant_id: int = Path(..., ge=1),
    booking_date: Optional[date] = Query(default=None, alias="date"),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
) -> list[BookingRead]:
    try:
        rows = await booking_usecase.list_restaurant_bookings(
            SqlAlchemyBookingRepository(session),
            restaurant_id=restaurant_id,
            actor=restaurant,
            booking_date=booking_date,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [BookingRead.from_db(booking=booking) for booking in rows]


@router.post("/bookings/{booking_id}/confirm", response_model=BookingActionRead)
async def confirm_booking(
    booking_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
    registry: ConnectionRegistry = Depends(get_registry),
) -> BookingActionRead:
    return await perform_transition(
        booking_usecase.confirm_booking,
        event=EventType.BOOKING_CONFIRMED,
        action="booking.confirmed",
        message="Booking confirmed",
        booking_id=booking_id,
        actor=restaurant,
        expected_version=_extract_version(if_match),
        session=session,
        registry=registry,
    )


@router.post("/bookings/{booking_id}/arrive", response_model=BookingActionRead)
async def mark_arrived(
    booking_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
    registry: ConnectionRegistry = Depends(get_registry),
) -> BookingActionRead:
    return await perform_transition(
        booking_usecase.mark_arrived,
        event=EventType.BOOKING_ARRIVED,
        action="booking.arrived",
        message="Customer arrival confirmed",
        booking_id=booking_id,
        actor=restaurant,
        expected_version=_extract_version(if_match),
        session=session,
        registry=registry,
    )


@router.post("/bookings/{booking_id}/complete", response_model=BookingActionRead)
async def mark_completed(
    booking_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
    registry: ConnectionRegistry = Depends(get_registry),
) -> BookingActionRead:
    return await perform_transition(
        booking_usecase.mark_completed,
        event=EventType.BOOKING_COMPLETED,
        action="booking.completed",
        message="Booking marked as complete",
        booking_id=booking_id,
        actor=restaurant,
        expected_version=_extract_version(if_match),
        session=session,
        registry=registry,
    )


@router.post("/bookings/{booking_id}/cancel", response_model=BookingActionRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
    registry: ConnectionRegistry = Depends(get_registry),
) -> BookingActionRead:
    return await perform_transition(
        booking_usecase.cancel_booking,
        event=EventType.BOOKING_CANCELLED,
        action="booking.cancelled",
        message="Booking cancelled",
        booking_id=booking_id,
        actor=restaurant,
        expected_version=_extract_version(if_match),
        session=session,
        registry=registry,
    )
