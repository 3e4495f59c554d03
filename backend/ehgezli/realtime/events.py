from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class EventType(StrEnum):
    NEW_BOOKING = "new_booking"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_ARRIVED = "booking_arrived"
    BOOKING_COMPLETED = "booking_completed"
    CONNECTION_ESTABLISHED = "connection_established"
    HEARTBEAT = "heartbeat"
    LOGOUT = "logout"
    ERROR = "error"


BOOKING_EVENTS = frozenset(
    {
        EventType.NEW_BOOKING,
        EventType.BOOKING_CONFIRMED,
        EventType.BOOKING_CANCELLED,
        EventType.BOOKING_ARRIVED,
        EventType.BOOKING_COMPLETED,
    }
)


class Envelope(BaseModel):
    """Wire frame shared by both directions: ``{"type": ..., "data": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    type: EventType
    data: Optional[dict[str, Any]] = None

    def to_wire(self) -> dict[str, Any]:
        wire = self.model_dump(mode="json")
        if wire["data"] is None:
            del wire["data"]
        return wire


def error_frame(message: str) -> dict[str, Any]:
    return {"type": EventType.ERROR.value, "message": message}
