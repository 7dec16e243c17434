"""Session lifecycle: create, read, update, delete and expire sessions.

The manager owns one active backend, picked once at construction: the
persistent SQLite backend when a database directory is configured, the
in-memory backend otherwise. An in-memory fallback is always kept as well.
Persistent failures never reach the caller:

- `create` writes the record to the fallback when the persistent write fails.
- `get` checks the fallback after a persistent miss or error, so a record
  that landed there during an outage is still found.
- `update` and `delete` are applied to the persistent backend and to any
  fallback copy; their errors are logged and swallowed.

A failure on one call does not disable the persistent backend for the next.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from models.session_models import MUTABLE_FIELDS, SessionRecord
from services.session.expiry import ExpiryPolicy
from services.session.session_store import InMemorySessionBackend, SessionBackend
from utils.session_cleaner import SessionCleaner

LOGGER = logging.getLogger(__name__)


class SessionManager:
	"""Store sessions under a sliding expiry with persistent-first storage."""

	def __init__(
		self,
		persistent: Optional[SessionBackend] = None,
		*,
		policy: Optional[ExpiryPolicy] = None,
		cleanup_interval_seconds: float = 600,
	) -> None:
		"""Create the manager.

		Args:
			persistent: Persistent backend, or None to keep sessions in memory only.
			policy: Expiry policy; defaults to a one hour TTL on the system clock.
			cleanup_interval_seconds: Delay between background sweeps once started.
		"""
		self.policy = policy or ExpiryPolicy()
		self._memory = InMemorySessionBackend()
		self._persistent = persistent
		self._cleaner = SessionCleaner(self, cleanup_interval_seconds)
		self._cleanup_task: Optional[asyncio.Task] = None

		if persistent is not None:
			LOGGER.info("SessionManager: using %s backend for persistence", persistent.name)
		else:
			LOGGER.info("SessionManager: using in-memory storage (no persistent backend configured)")

	@property
	def backend_name(self) -> str:
		return "persistent" if self._persistent is not None else "memory"

	async def create(self, session_id: str, data: Mapping[str, Any]) -> None:
		"""Store a new session record.

		Args:
			session_id: Caller-generated opaque id.
			data: Must contain `image_data` and `image_type`; may contain
				`image_description`, `components`, `conversation_history`, `difficulty`.

		Raises:
			ValueError: If the image fields are missing.
		"""
		record = SessionRecord.from_data(session_id, data, expires_at=self.policy.extend())

		if self._persistent is not None:
			try:
				await self._persistent.upsert(record)
				return
			except Exception as exc:
				LOGGER.error("Persistent session write failed for %s, keeping it in memory: %s", session_id, exc)

		await self._memory.upsert(record)

	async def get(self, session_id: str) -> Optional[SessionRecord]:
		"""Return a live session and slide its expiry forward, or None."""
		now = self.policy.now()
		record: Optional[SessionRecord] = None
		source: SessionBackend = self._memory

		if self._persistent is not None:
			try:
				record = await self._persistent.get(session_id, now)
				source = self._persistent
			except Exception as exc:
				LOGGER.error("Persistent session read failed for %s, checking memory: %s", session_id, exc)

		if record is None:
			record = await self._memory.get(session_id, now)
			source = self._memory
		if record is None:
			return None

		expires_at = self.policy.extend(now)
		try:
			await source.update(session_id, {"expires_at": expires_at})
		except Exception as exc:
			LOGGER.error("Failed to refresh expiry for session %s: %s", session_id, exc)
		record.expires_at = expires_at
		return record

	async def has(self, session_id: str) -> bool:
		return await self.get(session_id) is not None

	async def update(self, session_id: str, **fields: Any) -> None:
		"""Overwrite mutable fields and refresh the expiry.

		Only `conversation_history`, `components`, `difficulty` and
		`image_description` may be passed. Storage errors are logged, not raised.

		Raises:
			ValueError: If an immutable or unknown field is passed.
		"""
		unknown = set(fields) - MUTABLE_FIELDS
		if unknown:
			raise ValueError(f"Session fields cannot be updated: {', '.join(sorted(unknown))}")

		changes: Dict[str, Any] = dict(fields)
		changes["expires_at"] = self.policy.extend()

		if self._persistent is not None:
			try:
				await self._persistent.update(session_id, changes)
			except Exception as exc:
				LOGGER.error("Persistent session update failed for %s: %s", session_id, exc)

		await self._memory.update(session_id, changes)

	async def delete(self, session_id: str) -> bool:
		"""Remove a session. Returns whether a record existed.

		A storage error counts as "not deleted".
		"""
		existed = False
		if self._persistent is not None:
			try:
				existed = await self._persistent.delete(session_id)
			except Exception as exc:
				LOGGER.error("Persistent session delete failed for %s: %s", session_id, exc)

		return await self._memory.delete(session_id) or existed

	async def cleanup(self) -> int:
		"""Remove every expired session and return how many were removed."""
		now = self.policy.now()
		removed = 0

		if self._persistent is not None:
			try:
				removed += await self._persistent.delete_expired(now)
			except Exception as exc:
				LOGGER.error("Persistent session cleanup failed: %s", exc)

		removed += await self._memory.delete_expired(now)
		if removed:
			LOGGER.info("Cleaned up %d expired sessions", removed)
		return removed

	async def stats(self) -> Dict[str, Any]:
		"""Return the live session count, the TTL in minutes and the backend in use."""
		now = self.policy.now()
		result: Dict[str, Any] = {
			"activeSessions": await self._memory.count_live(now),
			"ttlMinutes": self.policy.ttl_minutes,
			"backend": self.backend_name,
		}
		if self._persistent is not None:
			try:
				result["activeSessions"] += await self._persistent.count_live(now)
			except Exception as exc:
				LOGGER.error("Persistent session count failed: %s", exc)
				result["error"] = str(exc)
		return result

	async def clear(self) -> None:
		"""Remove every session from every backend."""
		if self._persistent is not None:
			try:
				await self._persistent.clear()
			except Exception as exc:
				LOGGER.error("Persistent session clear failed: %s", exc)
		await self._memory.clear()

	def start(self) -> None:
		"""Start the background sweep. Must be called from a running event loop."""
		if self._cleanup_task is None or self._cleanup_task.done():
			self._cleanup_task = asyncio.create_task(self._cleaner.run_periodic_cleanup())

	@property
	def running(self) -> bool:
		return self._cleanup_task is not None and not self._cleanup_task.done()

	async def shutdown(self) -> None:
		"""Cancel the background sweep and wait for it to stop."""
		task, self._cleanup_task = self._cleanup_task, None
		if task is None:
			return
		task.cancel()
		try:
			await task
		except asyncio.CancelledError:
			pass
