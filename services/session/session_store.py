"""Session storage backends: the shared interface and the in-memory store."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from models.session_models import SessionRecord, coerce_components, coerce_history, normalize_difficulty
from services.session.expiry import is_live


class SessionBackend(ABC):
	"""Storage operations the session manager needs.

	Each method touches a single key or runs a single sweep statement, so
	callers racing on different keys never observe each other.
	"""

	name = "backend"

	@abstractmethod
	async def upsert(self, record: SessionRecord) -> None:
		"""Insert the record or replace the one stored under its id."""

	@abstractmethod
	async def get(self, session_id: str, now: float) -> Optional[SessionRecord]:
		"""Return the record if it exists and is live at `now`."""

	@abstractmethod
	async def update(self, session_id: str, fields: Mapping[str, Any]) -> bool:
		"""Overwrite the given fields. Returns True if a record was changed.

		Expiry is not checked, so an unswept expired record passed a new
		`expires_at` becomes live again.
		"""

	@abstractmethod
	async def delete(self, session_id: str) -> bool:
		"""Remove the record. Returns True if one existed."""

	@abstractmethod
	async def count_live(self, now: float) -> int:
		"""Count records that are live at `now`."""

	@abstractmethod
	async def delete_expired(self, now: float) -> int:
		"""Remove every record that is no longer live at `now` and return the count."""

	@abstractmethod
	async def clear(self) -> None:
		"""Remove every record."""


def apply_fields(record: SessionRecord, fields: Mapping[str, Any]) -> None:
	"""Copy updated fields onto a record, normalizing their types."""
	for key, value in fields.items():
		if key == "components":
			value = coerce_components(value)
		elif key == "conversation_history":
			value = coerce_history(value)
		elif key == "difficulty":
			value = normalize_difficulty(value)
		setattr(record, key, value)


class InMemorySessionBackend(SessionBackend):
	"""Keep sessions in a process-local dict.

	Records are copied on the way in and out so a caller mutating a fetched
	record changes nothing until it writes the record back.
	"""

	name = "memory"

	def __init__(self) -> None:
		self._sessions: Dict[str, SessionRecord] = {}

	def __len__(self) -> int:
		return len(self._sessions)

	def __contains__(self, session_id: object) -> bool:
		return session_id in self._sessions

	async def upsert(self, record: SessionRecord) -> None:
		self._sessions[record.session_id] = copy.deepcopy(record)

	async def get(self, session_id: str, now: float) -> Optional[SessionRecord]:
		"""Return a copy of a live record; stale records are dropped on read."""
		record = self._sessions.get(session_id)
		if record is None:
			return None
		if not is_live(record.expires_at, now):
			self._sessions.pop(session_id, None)
			return None
		return copy.deepcopy(record)

	async def update(self, session_id: str, fields: Mapping[str, Any]) -> bool:
		record = self._sessions.get(session_id)
		if record is None:
			return False
		apply_fields(record, copy.deepcopy(dict(fields)))
		return True

	async def delete(self, session_id: str) -> bool:
		return self._sessions.pop(session_id, None) is not None

	async def count_live(self, now: float) -> int:
		return sum(1 for record in self._sessions.values() if is_live(record.expires_at, now))

	async def delete_expired(self, now: float) -> int:
		expired = [sid for sid, record in self._sessions.items() if not is_live(record.expires_at, now)]
		for sid in expired:
			del self._sessions[sid]
		return len(expired)

	async def clear(self) -> None:
		self._sessions.clear()
