from datetime import timedelta
from typing import Any, AsyncIterator

import pytest
from ehgezli.config import get_settings
from ehgezli.deps import get_current_restaurant, get_current_user, get_session
from ehgezli.domain.identity import Identity, SubscriberKind
from ehgezli.utils.auth import create_access_token
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient


class DummySession:
    def __init__(self, subject_exists: bool) -> None:
        self.subject_exists = subject_exists

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self

    async def scalar(self, *args: Any, **kwargs: Any) -> int | None:
        return 1 if self.subject_exists else None


def _make_app(subject_exists: bool) -> TestClient:
    app = FastAPI()

    async def override_get_session() -> AsyncIterator[DummySession]:
        session = DummySession(subject_exists=subject_exists)
        yield session

    app.dependency_overrides[get_session] = override_get_session

    @app.get("/protected")
    async def protected(user: Identity = Depends(get_current_user)) -> dict[str, int]:
        return {"user_id": user.id}

    @app.get("/staff")
    async def staff(restaurant: Identity = Depends(get_current_restaurant)) -> dict[str, int]:
        return {"restaurant_id": restaurant.id}

    return TestClient(app)


def _token(
    secret: str,
    *,
    expired: bool = False,
    kind: SubscriberKind = SubscriberKind.USER,
) -> str:
    delta = timedelta(seconds=-1) if expired else timedelta(minutes=30)
    return create_access_token(subject_id=123, kind=kind, secret=secret, expires_delta=delta)


@pytest.fixture(autouse=True)
def _auth_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()


def test_protected_accepts_valid_token() -> None:
    client = _make_app(subject_exists=True)
    token = _token("testsecret")
    res = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["user_id"] == 123


def test_protected_rejects_missing_header() -> None:
    client = _make_app(subject_exists=True)
    res = client.get("/protected")
    assert res.status_code == 401
    assert res.headers.get("www-authenticate", "").lower().startswith("bearer")
    assert res.json()["detail"]["kind"] == "Unauthenticated"


def test_protected_rejects_invalid_token() -> None:
    client = _make_app(subject_exists=True)
    res = client.get("/protected", headers={"Authorization": "Bearer invalid"})
    assert res.status_code == 401


def test_protected_rejects_token_signed_with_other_secret() -> None:
    client = _make_app(subject_exists=True)
    token = _token("othersecret")
    res = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_protected_rejects_expired_token() -> None:
    client = _make_app(subject_exists=True)
    token = _token("testsecret", expired=True)
    res = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_protected_rejects_when_user_not_found() -> None:
    client = _make_app(subject_exists=False)
    token = _token("testsecret")
    res = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_user_token_cannot_reach_restaurant_routes() -> None:
    client = _make_app(subject_exists=True)
    token = _token("testsecret")
    res = client.get("/staff", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 403
    assert res.json()["detail"]["kind"] == "Forbidden"


def test_restaurant_token_reaches_restaurant_routes() -> None:
    client = _make_app(subject_exists=True)
    token = _token("testsecret", kind=SubscriberKind.RESTAURANT)
    res = client.get("/staff", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json() == {"restaurant_id": 123}
