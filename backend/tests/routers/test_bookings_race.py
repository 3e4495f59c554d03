import asyncio
from typing import Any, cast

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
from ehgezli.domain.identity import Identity, SubscriberKind
from ehgezli.locks import SlotLocks
from ehgezli.models import BookingStatus
from ehgezli.realtime.registry import ConnectionRegistry
from ehgezli.routers import bookings as router
from ehgezli.schemas import BookingCreate
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BOOKING_INITIAL_STATUS", raising=False)
    get_settings.cache_clear()


def _wire_store(monkeypatch: pytest.MonkeyPatch, store: InMemoryStore) -> None:
    monkeypatch.setattr(router, "SqlAlchemyBranchRepository", lambda s: InMemoryBranchRepository(store))
    monkeypatch.setattr(router, "SqlAlchemyBookingRepository", lambda s: InMemoryBookingRepository(store))
    monkeypatch.setattr(router, "SqlAlchemyOverrideRepository", lambda s: InMemoryOverrideRepository(store))
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: None)


async def _request(user_id: int, party_size: int, locks: SlotLocks, registry: ConnectionRegistry) -> Any:
    payload = BookingCreate.model_validate(
        {"branchId": 1, "date": "2030-05-01T12:00:00", "partySize": party_size}
    )
    return await router.create_booking(
        payload=payload,
        session=cast(AsyncSession, DummySession()),
        user=Identity(id=user_id, kind=SubscriberKind.USER),
        registry=registry,
        locks=locks,
    )


@pytest.mark.asyncio
async def test_concurrent_requests_for_last_seats_admit_only_one(monkeypatch: pytest.MonkeyPatch) -> None:
    store = InMemoryStore()
    store.add_branch(make_branch(seats_count=10))
    _wire_store(monkeypatch, store)
    locks, registry = SlotLocks(), ConnectionRegistry()

    results = await asyncio.gather(
        _request(200, 6, locks, registry),
        _request(201, 6, locks, registry),
        return_exceptions=True,
    )

    created = [r for r in results if not isinstance(r, BaseException)]
    failed = [r for r in results if isinstance(r, HTTPException)]
    assert len(created) == 1
    assert len(failed) == 1
    assert failed[0].status_code == 409
    assert failed[0].detail["kind"] == "CapacityExceeded"
    assert sum(b.party_size for b in store.bookings.values()) == 6
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_concurrent_requests_that_fit_both_succeed(monkeypatch: pytest.MonkeyPatch) -> None:
    store = InMemoryStore()
    store.add_branch(make_branch(seats_count=10))
    _wire_store(monkeypatch, store)
    locks, registry = SlotLocks(), ConnectionRegistry()

    results = await asyncio.gather(
        _request(200, 4, locks, registry),
        _request(201, 6, locks, registry),
    )

    assert {r.party_size for r in results} == {4, 6}
    assert all(r.status == BookingStatus.CONFIRMED for r in results)
