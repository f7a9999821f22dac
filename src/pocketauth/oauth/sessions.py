# In-memory OAuth session registry with TTL eviction.
# Created: 2026-02-21
#
# Abandoned flows (user never returns from the consent page) are evicted
# once older than the TTL, so the map cannot grow without bound.

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pocketauth.oauth.models import OAuthSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """``state -> OAuthSession`` for one provider."""

    def __init__(
        self,
        ttl_seconds: float,
        on_evict: Callable[[OAuthSession], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._on_evict = on_evict
        self._clock = clock
        self._sessions: dict[str, OAuthSession] = {}

    def evict_expired(self) -> int:
        """Drop sessions older than the TTL. Returns how many were evicted."""
        now = self._clock()
        expired = [
            state
            for state, session in self._sessions.items()
            if now - session.created_at > self.ttl_seconds
        ]
        for state in expired:
            session = self._sessions.pop(state)
            if self._on_evict is not None:
                self._on_evict(session)
        if expired:
            logger.info("Evicted %d abandoned OAuth session(s)", len(expired))
        return len(expired)

    def add(self, session: OAuthSession) -> None:
        self.evict_expired()
        session.created_at = self._clock()
        self._sessions[session.state] = session

    def get(self, state: str) -> OAuthSession | None:
        self.evict_expired()
        return self._sessions.get(state)

    def pop(self, state: str) -> OAuthSession | None:
        """Remove and return the session for *state* (at most once)."""
        self.evict_expired()
        return self._sessions.pop(state, None)

    def clear(self) -> list[OAuthSession]:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions

    def __contains__(self, state: object) -> bool:
        return state in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
