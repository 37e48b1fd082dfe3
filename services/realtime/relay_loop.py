"""Periodic fetch, dedup and broadcast of new wall images."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from services.errors import SourceError
from services.realtime.messages import ImageMessage, ViewerCountMessage
from services.realtime.registry import BroadcastRegistry
from services.source.image_source import ImageSourceClient

LOGGER = logging.getLogger(__name__)


class RelayLoop:
	"""Drive one poll-and-broadcast cycle per poll interval.

	The loop is the only actor that initiates broadcasts. It waits on its
	own timer and on the upstream response, never on a viewer.
	"""

	def __init__(
		self,
		source: ImageSourceClient,
		registry: BroadcastRegistry,
		poll_interval: float,
		announce_viewers: bool = True,
	) -> None:
		if poll_interval <= 0:
			raise ValueError("Poll interval must be positive.")
		self.source = source
		self.registry = registry
		self.poll_interval = poll_interval
		self.announce_viewers = announce_viewers
		self.cycles = 0
		self.failed_cycles = 0
		self.images_broadcast = 0
		self._announced_count: Optional[int] = None
		self._task: Optional[asyncio.Task[None]] = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	async def run_cycle(self) -> int:
		"""Poll once and broadcast each new image in upstream order.

		Upstream failures skip the cycle; they are logged and counted but
		never raised.

		Returns:
			The number of images broadcast.
		"""
		self.cycles += 1
		try:
			references = await self.source.poll()
		except SourceError as exc:
			self.failed_cycles += 1
			LOGGER.warning("Relay cycle %d skipped: %s", self.cycles, exc)
			references = []

		for reference in references:
			delivered = self.registry.broadcast(ImageMessage.from_reference(reference).model_dump_json())
			LOGGER.debug("Image %s delivered to %d viewer(s)", reference.id, delivered)
		self.images_broadcast += len(references)

		if self.announce_viewers:
			self._announce_viewer_count()
		return len(references)

	def _announce_viewer_count(self) -> None:
		count = self.registry.count
		# An announcement can evict a slow viewer; repeat until the count holds.
		while count != self._announced_count:
			self._announced_count = count
			self.registry.broadcast(ViewerCountMessage(count=count).model_dump_json())
			count = self.registry.count

	async def run(self) -> None:
		"""Cycle immediately, then on every poll-interval boundary until cancelled."""
		loop = asyncio.get_running_loop()
		started = loop.time()
		ticks = 0
		while True:
			try:
				await self.run_cycle()
			except Exception:
				LOGGER.exception("Relay cycle %d crashed", self.cycles)
			ticks += 1
			now = loop.time()
			if now > started + ticks * self.poll_interval:
				# Overran one or more boundaries; wait for the next one ahead.
				ticks = int((now - started) // self.poll_interval) + 1
			await asyncio.sleep(started + ticks * self.poll_interval - now)

	def start(self) -> "asyncio.Task[None]":
		"""Start the loop as a background task (no-op when already running)."""
		if not self.running:
			self._task = asyncio.create_task(self.run(), name="relay-loop")
			LOGGER.info("Relay loop started (poll every %.2fs)", self.poll_interval)
		return self._task

	async def stop(self) -> None:
		"""Cancel the loop and wait for it to finish."""
		task, self._task = self._task, None
		if task is None:
			return
		task.cancel()
		try:
			await task
		except asyncio.CancelledError:
			pass
		LOGGER.info("Relay loop stopped after %d cycle(s)", self.cycles)

	def stats(self) -> Dict[str, int]:
		return {
			"cycles": self.cycles,
			"failed_cycles": self.failed_cycles,
			"images_broadcast": self.images_broadcast,
		}
