from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from .models import Booking, BookingOverride, BookingStatus, Branch, OverrideType
from .utils.time import local_naive_to_aware


def _local(dt: Optional[datetime]) -> Optional[datetime]:
    return local_naive_to_aware(dt) if dt is not None else None


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case on input and serializes camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookingCreate(CamelModel):
    branch_id: int = Field(ge=1)
    starts_at: datetime = Field(alias="date", description="Slot start, ISO 8601; naive values are restaurant local time")
    party_size: int


class GuestBookingCreate(BookingCreate):
    guest_name: str = Field(min_length=1, max_length=255)
    guest_phone: str = Field(min_length=3, max_length=50)


class BookingCancel(CamelModel):
    version: Optional[int] = Field(default=None, ge=1)


class BookingRead(CamelModel):
    booking_id: int
    branch_id: int
    user_id: Optional[int]
    starts_at: datetime
    ends_at: Optional[datetime] = None
    party_size: int
    status: BookingStatus
    version: int
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    arrived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_serializer("starts_at", "ends_at", "arrived_at", "completed_at", "cancelled_at")
    def _ser_local(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, *, booking: Booking, branch: Optional[Branch] = None) -> "BookingRead":
        starts_at = local_naive_to_aware(booking.starts_at)
        ends_at = None
        if branch is not None:
            ends_at = starts_at + timedelta(minutes=branch.reservation_duration_minutes)
        return cls(
            booking_id=booking.id,
            branch_id=booking.branch_id,
            user_id=booking.user_id,
            starts_at=starts_at,
            ends_at=ends_at,
            party_size=booking.party_size,
            status=booking.status,
            version=booking.version,
            guest_name=booking.guest_name,
            guest_phone=booking.guest_phone,
            arrived_at=_local(booking.arrived_at),
            completed_at=_local(booking.completed_at),
            cancelled_at=_local(booking.cancelled_at),
        )


class BookingActionRead(CamelModel):
    message: str
    booking: BookingRead


class OverrideCreate(CamelModel):
    on_date: date = Field(alias="date")
    start_time: time
    end_time: time
    override_type: OverrideType
    new_max_seats: Optional[int] = Field(default=None, ge=0)
    note: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _check_window(self) -> "OverrideCreate":
        if self.start_time >= self.end_time:
            raise ValueError("startTime must be earlier than endTime")
        if self.override_type == OverrideType.CAPACITY and self.new_max_seats is None:
            raise ValueError("newMaxSeats is required for capacity overrides")
        return self


class OverrideRead(CamelModel):
    override_id: int
    branch_id: int
    on_date: date = Field(alias="date")
    start_time: time
    end_time: time
    override_type: OverrideType
    new_max_seats: Optional[int]
    note: Optional[str]

    @classmethod
    def from_db(cls, *, override: BookingOverride) -> "OverrideRead":
        return cls(
            override_id=override.id,
            branch_id=override.branch_id,
            on_date=override.on_date,
            start_time=override.start_time,
            end_time=override.end_time,
            override_type=override.override_type,
            new_max_seats=override.new_max_seats,
            note=override.note,
        )
