"""Bounded in-process session store.

Sessions map an opaque cookie token to the identity that logged in. Entries
expire after a fixed TTL and the least recently used entry is evicted once
the cache is full, so a missing entry only ever means "logged out".
"""

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from armory.services.credentials import generate_token

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SessionInfo:
    """Identity cached for a session token."""

    account_id: int
    email: str
    issued_at: datetime
    expires_at: datetime
    claims: dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionCache:
    """Thread-safe LRU cache of sessions with a TTL cap."""

    def __init__(
        self,
        capacity: int = 100,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, SessionInfo] = OrderedDict()
        self._lock = threading.Lock()

    def issue(self, account_id: int, email: str, claims: dict[str, Any] | None = None) -> tuple[str, SessionInfo]:
        """Create a session for an account and return its token."""
        now = self._clock()
        info = SessionInfo(
            account_id=account_id,
            email=email,
            issued_at=now,
            expires_at=now + self.ttl,
            claims=dict(claims or {}),
        )
        token = generate_token()
        self.store(token, info)
        return token, info

    def store(self, token: str, info: SessionInfo) -> None:
        with self._lock:
            self._entries[token] = info
            self._entries.move_to_end(token)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted least recently used session {evicted[:8]}...")

    def load(self, token: str | None) -> SessionInfo | None:
        """Return the live session for a token, or None."""
        if not token:
            return None
        with self._lock:
            info = self._entries.get(token)
            if info is None:
                return None
            if info.is_expired(self._clock()):
                del self._entries[token]
                return None
            self._entries.move_to_end(token)
            return info

    def evict(self, token: str | None) -> bool:
        """Remove a session. Returns True if one was present."""
        if not token:
            return False
        with self._lock:
            return self._entries.pop(token, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._entries
