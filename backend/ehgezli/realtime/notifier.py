from __future__ import annotations

import logging

from ..domain.identity import SubscriberKind
from ..models import Booking
from ..utils.time import local_naive_to_aware
from .events import BOOKING_EVENTS, Envelope, EventType
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def booking_envelope(event: EventType, booking: Booking, *, restaurant_id: int) -> Envelope:
    return Envelope(
        type=event,
        data={
            "bookingId": booking.id,
            "branchId": booking.branch_id,
            "restaurantId": restaurant_id,
            "userId": booking.user_id,
            "status": str(booking.status),
            "startsAt": local_naive_to_aware(booking.starts_at).isoformat(),
            "partySize": booking.party_size,
        },
    )


async def publish_booking_event(
    registry: ConnectionRegistry,
    event: EventType,
    booking: Booking,
    *,
    restaurant_id: int,
) -> int:
    """Push a booking lifecycle event to the owning restaurant and the booking's user."""
    if event not in BOOKING_EVENTS:
        raise ValueError(f"{event} is not a booking event")

    message = booking_envelope(event, booking, restaurant_id=restaurant_id).to_wire()
    delivered = await registry.notify(message, restaurant_id, SubscriberKind.RESTAURANT)
    if booking.user_id is not None:
        delivered += await registry.notify(message, booking.user_id, SubscriberKind.USER)
    logger.debug("event %s for booking %s delivered to %d connections", event, booking.id, delivered)
    return delivered
