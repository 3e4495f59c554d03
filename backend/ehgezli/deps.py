import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from fastapi.requests import HTTPConnection
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.identity import Identity, SubscriberKind
from .locks import SlotLocks
from .models import Restaurant, User
from .realtime.registry import ConnectionRegistry
from .utils.auth import decode_access_token
from .utils.http_errors import error_detail

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthenticated(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error_detail("Unauthenticated", message),
        headers=_BEARER_CHALLENGE,
    )


async def get_current_identity(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> Identity:
    if authorization is None:
        raise _unauthenticated("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthenticated("Bearer token required")

    settings = get_settings()
    try:
        identity = decode_access_token(
            token.strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError as exc:
        raise _unauthenticated("invalid or expired token") from exc

    model = Restaurant if identity.is_restaurant else User
    try:
        # Handlers open their own transaction on this session.
        async with session.begin():
            found = await session.scalar(select(model.id).where(model.id == identity.id))
    except SQLAlchemyError as exc:
        logger.exception("identity lookup failed for %s:%s", identity.kind, identity.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail("ServerError", "identity lookup failed"),
        ) from exc
    if found is None:
        raise _unauthenticated(f"{identity.kind} not found")
    return identity


async def get_current_user(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.kind != SubscriberKind.USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_detail("Forbidden", "user account required"),
        )
    return identity


async def get_current_restaurant(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.kind != SubscriberKind.RESTAURANT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_detail("Forbidden", "restaurant account required"),
        )
    return identity


def get_registry(conn: HTTPConnection) -> ConnectionRegistry:
    return conn.app.state.registry


def get_slot_locks(conn: HTTPConnection) -> SlotLocks:
    return conn.app.state.slot_locks
