"""One viewer's websocket connection: outbound queue plus reader/writer duties."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional
from uuid import uuid4

from services.errors import ConnectionFailure

if TYPE_CHECKING:
	from services.realtime.registry import BroadcastRegistry

LOGGER = logging.getLogger(__name__)
DEFAULT_QUEUE_CAPACITY = 32


class ViewerSession:
	"""Deliver broadcast messages to a single connected viewer.

	The connection is duck-typed on Starlette's ``WebSocket``: it needs
	``send_text``, ``receive`` and ``close`` coroutines. Other actors only
	call ``offer`` and ``kill``; the queue is read by this session's writer
	alone, which keeps per-viewer delivery in enqueue order.
	"""

	def __init__(self, connection: Any, registry: "BroadcastRegistry", queue_capacity: int = DEFAULT_QUEUE_CAPACITY) -> None:
		if queue_capacity < 1:
			raise ValueError("Queue capacity must be at least 1.")
		self.session_id = uuid4().hex
		self.connection = connection
		self.registry = registry
		self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_capacity)
		self.alive = True
		self.close_reason: Optional[str] = None
		self._stopped = asyncio.Event()
		self._closed = False

	@property
	def closed(self) -> bool:
		return self._closed

	def offer(self, message: str) -> bool:
		"""Enqueue without waiting; False when dead or the queue is full."""
		if not self.alive:
			return False
		try:
			self.queue.put_nowait(message)
		except asyncio.QueueFull:
			return False
		return True

	def kill(self, reason: str) -> None:
		"""Mark the session dead and wake ``run`` so teardown happens there."""
		if self.alive:
			self.alive = False
			self.close_reason = reason
		self._stopped.set()

	async def run(self) -> None:
		"""Register, serve the connection until either duty ends, then tear down."""
		self.registry.register(self)
		LOGGER.info("Viewer %s connected", self.session_id)
		duties = [
			asyncio.create_task(self._write_loop(), name=f"viewer-{self.session_id}-writer"),
			asyncio.create_task(self._read_loop(), name=f"viewer-{self.session_id}-reader"),
			asyncio.create_task(self._wait_stopped(), name=f"viewer-{self.session_id}-stop"),
		]
		reason = "cancelled"
		try:
			done, _ = await asyncio.wait(duties, return_when=asyncio.FIRST_COMPLETED)
			reason = self._exit_reason(done)
		finally:
			self.alive = False
			self.registry.unregister(self.session_id)
			for task in duties:
				task.cancel()
			await asyncio.gather(*duties, return_exceptions=True)
			await self.close(reason)

	async def close(self, reason: str = "closed") -> None:
		"""Unregister, drop queued messages and close the connection, exactly once."""
		if self._closed:
			return
		self._closed = True
		if self.close_reason is None:
			self.close_reason = reason
		self.alive = False
		self._stopped.set()
		self.registry.unregister(self.session_id)
		dropped = self._drain()
		try:
			await self.connection.close()
		except Exception as exc:
			# Peer already gone; the socket is released either way.
			LOGGER.debug("Closing viewer %s raised %r", self.session_id, exc)
		LOGGER.info("Viewer %s disconnected: %s (%d queued dropped)", self.session_id, self.close_reason, dropped)

	def _drain(self) -> int:
		dropped = 0
		while True:
			try:
				self.queue.get_nowait()
			except asyncio.QueueEmpty:
				return dropped
			dropped += 1

	async def _write_loop(self) -> str:
		while True:
			message = await self.queue.get()
			try:
				await self.connection.send_text(message)
			except Exception as exc:
				raise ConnectionFailure(f"write failed: {exc!r}") from exc

	async def _read_loop(self) -> str:
		# Inbound frames carry no application data; they only reveal liveness.
		while True:
			try:
				message = await self.connection.receive()
			except Exception as exc:
				raise ConnectionFailure(f"read failed: {exc!r}") from exc
			if message.get("type") == "websocket.disconnect":
				return f"peer closed (code {message.get('code', 1000)})"

	async def _wait_stopped(self) -> str:
		await self._stopped.wait()
		return self.close_reason or "stopped"

	def _exit_reason(self, done: Iterable["asyncio.Task[str]"]) -> str:
		for task in done:
			if task.cancelled():
				continue
			exc = task.exception()
			if exc is not None:
				return str(exc)
			return task.result()
		return "cancelled"
