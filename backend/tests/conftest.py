import asyncio
from datetime import date, datetime, time
from typing import Any, Callable, Optional, Tuple

import pytest
from ehgezli.models import Booking, BookingOverride, BookingStatus, Branch, OverrideType

CREATED = datetime(2025, 1, 1, 8, 0)


def make_branch(**kwargs: Any) -> Branch:
    values: dict[str, Any] = {
        "id": 1,
        "restaurant_id": 10,
        "address": "12 Nile St",
        "city": "Cairo",
        "opening_time": time(9, 0),
        "closing_time": time(22, 0),
        "tables_count": 5,
        "seats_count": 10,
        "interval_minutes": 30,
        "reservation_duration_minutes": 120,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(kwargs)
    return Branch(**values)


def make_booking(**kwargs: Any) -> Booking:
    values: dict[str, Any] = {
        "id": 100,
        "branch_id": 1,
        "user_id": 200,
        "starts_at": datetime(2030, 5, 1, 19, 0),
        "party_size": 2,
        "status": BookingStatus.CONFIRMED,
        "version": 1,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(kwargs)
    return Booking(**values)


def make_override(**kwargs: Any) -> BookingOverride:
    values: dict[str, Any] = {
        "id": 1,
        "branch_id": 1,
        "on_date": date(2030, 5, 1),
        "start_time": time(12, 0),
        "end_time": time(14, 0),
        "override_type": OverrideType.CLOSED,
        "new_max_seats": None,
        "note": None,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(kwargs)
    return BookingOverride(**values)


class InMemoryStore:
    """Rows shared by the in-memory repositories; every call yields to the loop once."""

    def __init__(self) -> None:
        self.branches: dict[int, Branch] = {}
        self.bookings: dict[int, Booking] = {}
        self.overrides: dict[int, BookingOverride] = {}
        self._next_booking_id = 1
        self._next_override_id = 1

    def add_branch(self, branch: Branch) -> Branch:
        self.branches[branch.id] = branch
        return branch

    def add_booking(self, booking: Booking) -> Booking:
        self.bookings[booking.id] = booking
        self._next_booking_id = max(self._next_booking_id, booking.id + 1)
        return booking

    def add_override(self, override: BookingOverride) -> BookingOverride:
        self.overrides[override.id] = override
        self._next_override_id = max(self._next_override_id, override.id + 1)
        return override


class InMemoryBranchRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, branch_id: int) -> Branch | None:
        await asyncio.sleep(0)
        return self.store.branches.get(branch_id)

    async def get_for_update(self, branch_id: int) -> Branch | None:
        return await self.get(branch_id)


class InMemoryBookingRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def list_for_branch_on_date(self, branch_id: int, booking_date: date) -> list[Booking]:
        await asyncio.sleep(0)
        return [
            b
            for b in self.store.bookings.values()
            if b.branch_id == branch_id
            and b.starts_at.date() == booking_date
            and b.status != BookingStatus.CANCELLED
        ]

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
    ) -> Booking:
        await asyncio.sleep(0)
        booking = make_booking(
            id=self.store._next_booking_id,
            branch_id=branch_id,
            user_id=user_id,
            starts_at=starts_at,
            party_size=party_size,
            status=status,
            guest_name=guest_name,
            guest_phone=guest_phone,
        )
        return self.store.add_booking(booking)

    async def get_for_update(self, booking_id: int) -> Optional[Tuple[Booking, Branch]]:
        await asyncio.sleep(0)
        booking = self.store.bookings.get(booking_id)
        if booking is None:
            return None
        return booking, self.store.branches[booking.branch_id]

    async def get_for_user(self, booking_id: int, user_id: int) -> Booking | None:
        booking = self.store.bookings.get(booking_id)
        if booking is None or booking.user_id != user_id:
            return None
        return booking

    async def list_by_user(self, user_id: int) -> list[Booking]:
        rows = [b for b in self.store.bookings.values() if b.user_id == user_id]
        return sorted(rows, key=lambda b: b.starts_at, reverse=True)

    async def list_by_restaurant(self, restaurant_id: int, booking_date: date | None = None) -> list[Booking]:
        branch_ids = {b.id for b in self.store.branches.values() if b.restaurant_id == restaurant_id}
        rows = [
            b
            for b in self.store.bookings.values()
            if b.branch_id in branch_ids and (booking_date is None or b.starts_at.date() == booking_date)
        ]
        return sorted(rows, key=lambda b: b.starts_at)

    async def save(self, booking: Booking) -> Booking:
        await asyncio.sleep(0)
        self.store.bookings[booking.id] = booking
        return booking


class InMemoryOverrideRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def list_for_branch_on_date(self, branch_id: int, on_date: date) -> list[BookingOverride]:
        await asyncio.sleep(0)
        return [o for o in self.store.overrides.values() if o.branch_id == branch_id and o.on_date == on_date]

    async def list_for_branch(self, branch_id: int) -> list[BookingOverride]:
        rows = [o for o in self.store.overrides.values() if o.branch_id == branch_id]
        return sorted(rows, key=lambda o: (o.on_date, o.start_time))

    async def create(self, **kwargs: Any) -> BookingOverride:
        override = make_override(id=self.store._next_override_id, **kwargs)
        return self.store.add_override(override)

    async def get(self, override_id: int) -> Optional[Tuple[BookingOverride, Branch]]:
        override = self.store.overrides.get(override_id)
        if override is None:
            return None
        return override, self.store.branches[override.branch_id]

    async def delete(self, override: BookingOverride) -> None:
        self.store.overrides.pop(override.id, None)


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


class FakeConnection:
    """Stands in for a WebSocket: records frames and close codes."""

    def __init__(self, *, fail_send: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed_with: Optional[int] = None
        self.fail_send = fail_send

    async def send_json(self, data: Any) -> None:
        if self.fail_send:
            raise ConnectionResetError("peer gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed_with = code


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repos(store: InMemoryStore) -> Tuple[InMemoryBranchRepository, InMemoryBookingRepository, InMemoryOverrideRepository]:
    return (
        InMemoryBranchRepository(store),
        InMemoryBookingRepository(store),
        InMemoryOverrideRepository(store),
    )


@pytest.fixture
def branch_factory() -> Callable[..., Branch]:
    return make_branch


@pytest.fixture
def booking_factory() -> Callable[..., Booking]:
    return make_booking


@pytest.fixture
def override_factory() -> Callable[..., BookingOverride]:
    return make_override
