from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from starlette.concurrency import run_in_threadpool

from kangga.api.rate_limit import ws_limiter
from kangga.core.exceptions import ValidationError
from kangga.settings import get_settings
from kangga.trip import TripKind

router = APIRouter()


def extract_api_key_and_protocol(websocket: WebSocket) -> tuple[str | None, str | None]:
    """Extract API key and full protocol from Sec-WebSocket-Protocol header.

    Expected format: apikey.<key>
    Returns: (api_key, full_protocol) - both needed for proper handshake
    """
    protocol_header = websocket.headers.get("sec-websocket-protocol")
    if protocol_header:
        protocols = [p.strip() for p in protocol_header.split(",")]
        for protocol in protocols:
            if protocol.startswith("apikey."):
                return protocol.split(".", 1)[1], protocol
    return None, None


@dataclass(frozen=True)
class Subscription:
    """What one connection wants to hear about.

    user_id narrows trip, negotiation and wallet updates to that party;
    kind narrows new trip requests to one worker type. Unset fields match
    everything (operator dashboards).
    """

    user_id: str | None = None
    kind: str | None = None

    def wants(self, message: dict[str, Any]) -> bool:
        data = message.get("data") or {}
        message_type = message.get("type")
        if message_type == "trip_request":
            return self.kind is None or data.get("kind") == self.kind
        if message_type in ("trip_update", "negotiation_update"):
            return self.user_id is None or self.user_id in (
                data.get("requester_id"),
                data.get("worker_id"),
            )
        if message_type == "wallet_update":
            return self.user_id is None or self.user_id == data.get("worker_id")
        return True


class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    def __init__(self) -> None:
        self.active_connections: dict[WebSocket, Subscription] = {}

    async def connect(
        self,
        websocket: WebSocket,
        subprotocol: str | None = None,
        subscription: Subscription | None = None,
    ) -> None:
        await websocket.accept(subprotocol=subprotocol)
        self.active_connections[websocket] = subscription or Subscription()

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.pop(websocket, None)

    async def send_message(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.send_json(message)

    async def broadcast(self, message: dict[str, Any]) -> None:
        for connection, subscription in list(self.active_connections.items()):
            if subscription.wants(message):
                await self.send_message(connection, message)


manager = ConnectionManager()


def _parse_subscription(websocket: WebSocket) -> Subscription:
    kind = websocket.query_params.get("kind")
    if kind is not None and kind not in {k.value for k in TripKind}:
        raise ValidationError(f"Unknown trip kind: {kind}")
    return Subscription(user_id=websocket.query_params.get("user_id"), kind=kind)


async def _open_requests_snapshot(websocket: WebSocket, kind: str | None) -> list[dict[str, Any]]:
    dispatch = getattr(websocket.app.state, "dispatch", None)
    if dispatch is None:
        return []
    kinds = [TripKind(kind)] if kind else list(TripKind)
    snapshot: list[dict[str, Any]] = []
    for trip_kind in kinds:
        trips = await run_in_threadpool(dispatch.list_available, trip_kind)
        snapshot.extend(trip.model_dump(mode="json") for trip in trips)
    return snapshot


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    api_key, subprotocol = extract_api_key_and_protocol(websocket)
    settings = get_settings()

    if not api_key or api_key != settings.api.key:
        await websocket.close(code=1008)
        return

    # Rate limit WebSocket connections per client
    client_key = f"key:{api_key}"
    if ws_limiter.is_limited(client_key):
        await websocket.close(code=1008)
        return

    try:
        subscription = _parse_subscription(websocket)
    except ValidationError:
        await websocket.close(code=1003)
        return

    await manager.connect(websocket, subprotocol=subprotocol, subscription=subscription)

    try:
        trips = await _open_requests_snapshot(websocket, subscription.kind)
        await manager.send_message(websocket, {"type": "snapshot", "data": {"trips": trips}})

        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        manager.disconnect(websocket)
