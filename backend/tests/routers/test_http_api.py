from typing import AsyncIterator, Iterator

import pytest
from conftest import (
    DummySession,
    InMemoryBookingRepository,
    InMemoryBranchRepository,
    InMemoryOverrideRepository,
    InMemoryStore,
    make_branch,
)
from ehgezli.config import get_settings
from ehgezli.deps import get_current_user, get_session
from ehgezli.domain.identity import Identity, SubscriberKind
from ehgezli.locks import SlotLocks
from ehgezli.main import app
from ehgezli.realtime.registry import ConnectionRegistry
from ehgezli.routers import availability as availability_router
from ehgezli.routers import bookings as bookings_router
from httpx import ASGITransport, AsyncClient

USER = Identity(id=200, kind=SubscriberKind.USER)


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryStore]:
    monkeypatch.delenv("BOOKING_INITIAL_STATUS", raising=False)
    get_settings.cache_clear()

    store = InMemoryStore()
    store.add_branch(make_branch(seats_count=10))
    for module in (availability_router, bookings_router):
        monkeypatch.setattr(module, "SqlAlchemyBranchRepository", lambda s: InMemoryBranchRepository(store))
        monkeypatch.setattr(module, "SqlAlchemyBookingRepository", lambda s: InMemoryBookingRepository(store))
        monkeypatch.setattr(module, "SqlAlchemyOverrideRepository", lambda s: InMemoryOverrideRepository(store))
    monkeypatch.setattr(bookings_router, "emit_audit_log", lambda **kwargs: None)

    async def override_get_session() -> AsyncIterator[DummySession]:
        yield DummySession()

    async def override_get_current_user() -> Identity:
        return USER

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.registry = ConnectionRegistry()
    app.state.slot_locks = SlotLocks()
    yield store
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health_carries_request_id() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/health", headers={"X-Request-ID": "trace-1"})
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"] == "trace-1"


@pytest.mark.asyncio
async def test_booking_flow_over_http(store: InMemoryStore) -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.post("/bookings", json={"branchId": 1, "date": "2030-05-01T12:00:00", "partySize": 6})
        assert first.status_code == 201
        body = first.json()
        assert body["partySize"] == 6
        assert body["status"] == "confirmed"
        assert body["startsAt"].startswith("2030-05-01T12:00:00")

        availability = await client.get("/branches/1/availability", params={"date": "2030-05-01"})
        assert availability.status_code == 200
        assert availability.json()["12:00"] == 4

        second = await client.post(
            "/bookings", json={"branch_id": 1, "date": "2030-05-01T12:00:00", "party_size": 5}
        )
        assert second.status_code == 409
        assert second.json()["detail"]["kind"] == "CapacityExceeded"

        third = await client.post("/bookings", json={"branchId": 1, "date": "2030-05-01T12:00:00", "partySize": 4})
        assert third.status_code == 201

        availability = await client.get("/branches/1/availability", params={"date": "2030-05-01"})
        assert availability.json()["12:00"] == 0


@pytest.mark.asyncio
async def test_http_error_mapping(store: InMemoryStore) -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        missing = await client.get("/branches/9/availability", params={"date": "2030-05-01"})
        off_grid = await client.post(
            "/bookings", json={"branchId": 1, "date": "2030-05-01T12:10:00", "partySize": 2}
        )
        zero = await client.post("/bookings", json={"branchId": 1, "date": "2030-05-01T12:00:00", "partySize": 0})

    assert missing.status_code == 404
    assert missing.json()["detail"]["kind"] == "BranchNotFound"
    assert off_grid.status_code == 400
    assert off_grid.json()["detail"]["kind"] == "InvalidSlot"
    assert zero.status_code == 400
    assert zero.json()["detail"]["kind"] == "InvalidPartySize"
