"""Sliding expiry for sessions."""

from __future__ import annotations

import time
from typing import Callable, Optional

from utils.config import DEFAULT_SESSION_TTL_SECONDS

Clock = Callable[[], float]


def is_live(expires_at: float, now: float) -> bool:
	"""A session is live strictly before its expiry timestamp."""
	return now < expires_at


class ExpiryPolicy:
	"""Compute and check expiry timestamps against a fixed time-to-live.

	Timestamps are epoch seconds. `clock` is injectable so tests can move
	time by hand.
	"""

	def __init__(self, ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS, clock: Clock = time.time) -> None:
		if ttl_seconds <= 0:
			raise ValueError("Session TTL must be positive.")
		self.ttl_seconds = ttl_seconds
		self._clock = clock

	@property
	def ttl_minutes(self) -> float:
		return self.ttl_seconds / 60

	def now(self) -> float:
		return self._clock()

	def extend(self, now: Optional[float] = None) -> float:
		"""Return the expiry for a session touched at `now`."""
		return (self.now() if now is None else now) + self.ttl_seconds

	def is_live(self, expires_at: float, now: Optional[float] = None) -> bool:
		return is_live(expires_at, self.now() if now is None else now)
