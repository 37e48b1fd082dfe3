"""WebSocket endpoint that streams wall images to one viewer."""

from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketException, status

from services.realtime.registry import BroadcastRegistry
from services.realtime.viewer_session import ViewerSession

router = APIRouter()
WS_PATH = "/ws"


def _require_registry(websocket: WebSocket) -> BroadcastRegistry:
	registry = getattr(websocket.app.state, "registry", None)
	if registry is None or registry.closed:
		raise WebSocketException(code=status.WS_1011_INTERNAL_ERROR, reason="Relay unavailable")
	return registry


@router.websocket(WS_PATH)
async def wall_socket(websocket: WebSocket, registry: BroadcastRegistry = Depends(_require_registry)):
	"""Register the viewer and relay broadcasts until either side hangs up."""
	await websocket.accept()
	session = ViewerSession(websocket, registry, queue_capacity=websocket.app.state.config.queue_capacity)
	await session.run()
