from datetime import datetime

from ..models import Booking, BookingStatus
from .errors import ForbiddenError, InvalidTransitionError
from .identity import Identity, SubscriberKind

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ARRIVED, BookingStatus.CANCELLED}),
    BookingStatus.ARRIVED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Users may only cancel; every other move belongs to the restaurant.
USER_TARGETS = frozenset({BookingStatus.CANCELLED})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def authorize(actor: Identity, booking: Booking, *, restaurant_id: int, target: BookingStatus) -> None:
    """Raise ForbiddenError unless ``actor`` may move ``booking`` to ``target``."""
    if actor.kind == SubscriberKind.USER:
        if booking.user_id is None or booking.user_id != actor.id:
            raise ForbiddenError("booking belongs to another user")
        if target not in USER_TARGETS:
            raise ForbiddenError("users can only cancel bookings")
        return
    if actor.kind == SubscriberKind.RESTAURANT:
        if restaurant_id != actor.id:
            raise ForbiddenError("booking belongs to another restaurant")
        return
    raise ForbiddenError("unknown actor kind")


def apply_transition(booking: Booking, target: BookingStatus, *, at: datetime) -> BookingStatus:
    """Move ``booking`` to ``target`` in place and return the previous status."""
    current = BookingStatus(booking.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(f"cannot move booking from {current} to {target}")

    booking.status = target
    if target == BookingStatus.ARRIVED:
        booking.arrived_at = at
    elif target == BookingStatus.COMPLETED:
        booking.completed_at = at
    elif target == BookingStatus.CANCELLED:
        booking.cancelled_at = at
    booking.version += 1
    booking.updated_at = at
    return current
