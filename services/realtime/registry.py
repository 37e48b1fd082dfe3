"""Authoritative set of live viewer sessions with non-blocking fan-out."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:
	from services.realtime.viewer_session import ViewerSession

LOGGER = logging.getLogger(__name__)


class BroadcastRegistry:
	"""Track connected viewers and push messages to all of them.

	Membership is guarded by a lock and only ever snapshotted under it;
	enqueueing happens outside the lock and never waits. A viewer whose
	queue is full is evicted and killed rather than slowing the broadcast.
	"""

	def __init__(self) -> None:
		self._sessions: Dict[str, "ViewerSession"] = {}
		self._lock = threading.Lock()
		self._closed = False

	@property
	def count(self) -> int:
		"""Number of registered sessions."""
		with self._lock:
			return len(self._sessions)

	@property
	def closed(self) -> bool:
		return self._closed

	def __len__(self) -> int:
		return self.count

	def __contains__(self, session_id: object) -> bool:
		with self._lock:
			return session_id in self._sessions

	def session_ids(self) -> frozenset[str]:
		"""Snapshot of registered session ids."""
		with self._lock:
			return frozenset(self._sessions)

	def register(self, session: "ViewerSession") -> None:
		"""Add a session; once the registry is closed the session is killed instead."""
		with self._lock:
			if not self._closed:
				self._sessions[session.session_id] = session
				return
		session.kill("service shutting down")

	def unregister(self, session_id: str) -> None:
		"""Remove a session if present."""
		with self._lock:
			self._sessions.pop(session_id, None)

	def _snapshot(self) -> List["ViewerSession"]:
		with self._lock:
			return list(self._sessions.values())

	def broadcast(self, message: str) -> int:
		"""Enqueue ``message`` for every registered session.

		Returns:
			The number of sessions that accepted the message.
		"""
		delivered = 0
		for session in self._snapshot():
			if session.offer(message):
				delivered += 1
				continue
			self.unregister(session.session_id)
			if session.alive:
				LOGGER.warning("Evicting slow viewer %s (queue full)", session.session_id)
				session.kill("slow consumer: outbound queue full")
		return delivered

	def close_all(self) -> int:
		"""Close the registry and kill every session. Used at shutdown."""
		with self._lock:
			self._closed = True
			sessions = list(self._sessions.values())
			self._sessions.clear()
		for session in sessions:
			session.kill("service shutting down")
		if sessions:
			LOGGER.info("Closed %d viewer session(s) on shutdown", len(sessions))
		return len(sessions)
