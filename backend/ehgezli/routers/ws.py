import logging
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..config import get_settings
from ..deps import get_registry
from ..domain.errors import UnauthenticatedError
from ..domain.identity import Identity
from ..realtime.events import BOOKING_EVENTS, Envelope, EventType, error_frame
from ..realtime.registry import WS_NORMAL_CLOSURE, ConnectionRegistry
from ..utils.auth import decode_access_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

# Returns False when the connection should stop reading.
Handler = Callable[[WebSocket, ConnectionRegistry, Envelope], Awaitable[bool]]


def resolve_identity(token: Optional[str]) -> Optional[Identity]:
    if not token:
        return None
    settings = get_settings()
    try:
        return decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError:
        logger.info("ws handshake with invalid token")
        return None


async def _on_heartbeat(websocket: WebSocket, registry: ConnectionRegistry, envelope: Envelope) -> bool:
    await registry.heartbeat(websocket)
    await websocket.send_json(Envelope(type=EventType.HEARTBEAT).to_wire())
    return True


async def _on_logout(websocket: WebSocket, registry: ConnectionRegistry, envelope: Envelope) -> bool:
    await registry.unregister(websocket)
    await websocket.close(code=WS_NORMAL_CLOSURE)
    return False


async def _reject_server_event(websocket: WebSocket, registry: ConnectionRegistry, envelope: Envelope) -> bool:
    await websocket.send_json(error_frame(f"{envelope.type} is pushed by the server only"))
    return True


HANDLERS: dict[EventType, Handler] = {
    EventType.HEARTBEAT: _on_heartbeat,
    EventType.LOGOUT: _on_logout,
    **{event: _reject_server_event for event in BOOKING_EVENTS},
}


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket, registry: ConnectionRegistry = Depends(get_registry)) -> None:
    """Booking notifications for one user or restaurant, authenticated by ``token`` query or cookie."""
    token = websocket.query_params.get("token") or websocket.cookies.get("token")
    identity = resolve_identity(token)

    await websocket.accept()
    try:
        info = await registry.register(websocket, identity)
    except UnauthenticatedError:
        return

    try:
        await websocket.send_json(
            Envelope(
                type=EventType.CONNECTION_ESTABLISHED,
                data={"subscriberId": info.subscriber_id, "subscriberKind": str(info.subscriber_kind)},
            ).to_wire()
        )
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", WS_NORMAL_CLOSURE), message.get("reason"))
            raw = message.get("text")
            if raw is None:
                await websocket.send_json(error_frame("Invalid message format"))
                continue
            try:
                envelope = Envelope.model_validate_json(raw)
            except ValidationError:
                await websocket.send_json(error_frame("Invalid message format"))
                continue

            handler = HANDLERS.get(envelope.type, _reject_server_event)
            if not await handler(websocket, registry, envelope):
                break
    except WebSocketDisconnect:
        logger.debug("ws client disconnected")
    finally:
        await registry.unregister(websocket)
