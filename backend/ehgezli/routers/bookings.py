import logging
import re
from typing import Awaitable, Callable, List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user, get_registry, get_session, get_slot_locks
from ..domain.errors import DomainError
from ..domain.identity import Identity
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyBranchRepository,
    SqlAlchemyOverrideRepository,
)
from ..locks import SlotLocks
from ..models import Booking, BookingStatus, Branch
from ..realtime.events import EventType
from ..realtime.notifier import publish_booking_event
from ..realtime.registry import ConnectionRegistry
from ..schemas import BookingActionRead, BookingCancel, BookingCreate, BookingRead
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import AuditAction, AuditInitiator, AuditLogError, emit_audit_log
from ..utils.http_errors import error_detail, to_http_exception
from ..utils.time import to_local_naive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["bookings"])

_IF_MATCH_PATTERN = re.compile(r'^(?:W/)?"?(\d+)"?$')

Transition = Callable[..., Awaitable[Tuple[Booking, Branch, BookingStatus]]]


def _extract_version(if_match: Optional[str], payload: Optional[BookingCancel] = None) -> Optional[int]:
    """If-Match wins over the body; neither means the caller skips the version check."""
    if if_match is not None:
        match = _IF_MATCH_PATTERN.match(if_match.strip())
        if match is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error_detail("InvalidVersion", "If-Match must be a positive integer version"),
            )
        version = int(match.group(1))
    elif payload is not None and payload.version is not None:
        version = payload.version
    else:
        return None

    if version < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("InvalidVersion", "version must be >= 1"),
        )
    return version


def _audit_failed(exc: AuditLogError) -> HTTPException:
    logger.error("audit log failed, rolling back: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=error_detail("ServerError", "failed to record audit log"),
    )


async def perform_transition(
    transition: Transition,
    *,
    event: EventType,
    action: AuditAction,
    message: str,
    booking_id: int,
    actor: Identity,
    expected_version: Optional[int],
    session: AsyncSession,
    registry: ConnectionRegistry,
) -> BookingActionRead:
    """Run one lifecycle move in a transaction, audit it, then push the event after commit."""
    booking_repo = SqlAlchemyBookingRepository(session)
    initiator: AuditInitiator = "restaurant" if actor.is_restaurant else "user"
    try:
        async with session.begin():
            booking, branch, previous = await transition(
                booking_repo,
                booking_id=booking_id,
                actor=actor,
                expected_version=expected_version,
            )
            emit_audit_log(
                action=action,
                initiator=initiator,
                actor_id=actor.id,
                branch_id=branch.id,
                booking_id=booking.id,
                user_id=booking.user_id,
                party_size=booking.party_size,
                starts_at=booking.starts_at,
                status_from=previous,
                status_to=booking.status,
                version=booking.version,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    except AuditLogError as exc:
        raise _audit_failed(exc) from exc

    await publish_booking_event(registry, event, booking, restaurant_id=branch.restaurant_id)
    return BookingActionRead(message=message, booking=BookingRead.from_db(booking=booking, branch=branch))


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user: Identity = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry),
    locks: SlotLocks = Depends(get_slot_locks),
) -> BookingRead:
    starts_at = to_local_naive(payload.starts_at)
    initial_status = BookingStatus(get_settings().booking_initial_status)
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
                    user_id=user.id,
                    initial_status=initial_status,
                )
                emit_audit_log(
                    action="booking.created",
                    initiator="user",
                    actor_id=user.id,
                    branch_id=branch.id,
                    booking_id=booking.id,
                    user_id=user.id,
                    party_size=booking.party_size,
                    starts_at=booking.starts_at,
                    status_to=booking.status,
                    version=booking.version,
                )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    except AuditLogError as exc:
        raise _audit_failed(exc) from exc

    await publish_booking_event(registry, EventType.NEW_BOOKING, booking, restaurant_id=branch.restaurant_id)
    return BookingRead.from_db(booking=booking, branch=branch)


@router.get("/bookings", response_model=List[BookingRead])
async def list_my_bookings(
    session: AsyncSession = Depends(get_session),
    user: Identity = Depends(get_current_user),
) -> list[BookingRead]:
    rows = await booking_usecase.list_user_bookings(SqlAlchemyBookingRepository(session), user_id=user.id)
    return [BookingRead.from_db(booking=booking) for booking in rows]


@router.get("/bookings/{booking_id}", response_model=BookingRead)
async def get_my_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user: Identity = Depends(get_current_user),
) -> BookingRead:
    booking = await booking_usecase.get_user_booking(
        SqlAlchemyBookingRepository(session),
        booking_id=booking_id,
        user_id=user.id,
    )
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("BookingNotFound", "booking not found"),
        )
    return BookingRead.from_db(booking=booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingActionRead)
async def cancel_my_booking(
    booking_id: int = Path(..., ge=1),
    payload: Optional[BookingCancel] = None,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    user: Identity = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry),
) -> BookingActionRead:
    return await perform_transition(
        booking_usecase.cancel_booking,
        event=EventType.BOOKING_CANCELLED,
        action="booking.cancelled",
        message="Booking cancelled",
        booking_id=booking_id,
        actor=user,
        expected_version=_extract_version(if_match, payload),
        session=session,
        registry=registry,
    )
