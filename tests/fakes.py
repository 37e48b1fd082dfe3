"""Test doubles for viewer connections."""

from __future__ import annotations

import asyncio


class FakeConnection:
    """Stand-in for a Starlette WebSocket driven by the test."""

    def __init__(self, block_sends: bool = False, fail_sends: bool = False) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0
        self.fail_sends = fail_sends
        self._inbound: asyncio.Queue[dict] = asyncio.Queue()
        self._send_gate = asyncio.Event()
        if not block_sends:
            self._send_gate.set()

    async def send_text(self, data: str) -> None:
        await self._send_gate.wait()
        if self.fail_sends:
            raise ConnectionResetError("peer reset")
        self.sent.append(data)

    async def receive(self) -> dict:
        return await self._inbound.get()

    async def close(self, code: int = 1000) -> None:
        self.close_calls += 1
        self.closed = True

    def peer_disconnect(self, code: int = 1001) -> None:
        self._inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    def peer_send(self, text: str) -> None:
        self._inbound.put_nowait({"type": "websocket.receive", "text": text})


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


