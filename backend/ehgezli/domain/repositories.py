from __future__ import annotations

from datetime import date, datetime, time
from typing import Protocol

from ..models import Booking, BookingOverride, BookingStatus, Branch, OverrideType


class BranchRepository(Protocol):
    async def get(self, branch_id: int) -> Branch | None: ...

    async def get_for_update(self, branch_id: int) -> Branch | None: ...


class BookingRepository(Protocol):
    async def list_for_branch_on_date(self, branch_id: int, booking_date: date) -> list[Booking]: ...

    async def create(
        self,
        *,
        branch_id: int,
        user_id: int | None,
        starts_at: datetime,
        party_size: int,
        status: BookingStatus,
        guest_name: str | None = None,
        guest_phone: str | None = None,
    ) -> Booking: ...

    async def get_for_update(self, booking_id: int) -> tuple[Booking, Branch] | None: ...

    async def get_for_user(self, booking_id: int, user_id: int) -> Booking | None: ...

    async def list_by_user(self, user_id: int) -> list[Booking]: ...

    async def list_by_restaurant(
        self,
        restaurant_id: int,
        booking_date: date | None = None,
    ) -> list[Booking]: ...

    async def save(self, booking: Booking) -> Booking: ...


class OverrideRepository(Protocol):
    async def list_for_branch_on_date(self, branch_id: int, on_date: date) -> list[BookingOverride]: ...

    async def list_for_branch(self, branch_id: int) -> list[BookingOverride]: ...

    async def create(
        self,
        *,
        branch_id: int,
        on_date: date,
        start_time: time,
        end_time: time,
        override_type: OverrideType,
        new_max_seats: int | None,
        note: str | None,
    ) -> BookingOverride: ...

    async def get(self, override_id: int) -> tuple[BookingOverride, Branch] | None: ...

    async def delete(self, override: BookingOverride) -> None: ...
