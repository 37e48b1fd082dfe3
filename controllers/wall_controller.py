"""Read-only views over the running relay."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from routes.wall_ws import WS_PATH


def _state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Relay is not running")
    return value


async def get_client_config(request: Request) -> Dict[str, Any]:
    """Return what the browser needs to connect to the wall."""
    config = _state(request, "config")
    ws_url = request.base_url.replace(scheme="wss" if request.url.scheme == "https" else "ws", path=WS_PATH)
    return {"ws_url": str(ws_url), "ws_path": WS_PATH, "poll_interval": config.poll_interval}


async def get_stats(request: Request) -> Dict[str, Any]:
    """Return viewer count plus relay and upstream counters."""
    registry = _state(request, "registry")
    relay = _state(request, "relay")
    source = _state(request, "image_source")
    return {
        "viewers": registry.count,
        "relay": relay.stats(),
        "source": source.stats(),
    }
