"""In-memory session store and the session context threaded into services.

Sessions map an opaque token to the email that logged in. They are never
written to disk and live for the process lifetime, or until their TTL runs
out. Expired entries are evicted when they are looked up and whenever a new
session is created.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Who is making a request. ``identity`` is None for anonymous callers."""
    identity: Optional[str] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def current_identity(self) -> Optional[str]:
        return self.identity


ANONYMOUS = SessionContext()


@dataclass
class _StoredSession:
    identity:   str
    created_at: float = field(default_factory=time.monotonic)
    expires_at: Optional[float] = None   # absolute monotonic deadline

    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class SessionStore:
    """Token -> identity map with optional TTL-based expiry."""

    def __init__(self, ttl_seconds: Optional[int] = None) -> None:
        self._sessions: Dict[str, _StoredSession] = {}
        self._ttl = ttl_seconds

    def create(self, identity: str) -> SessionContext:
        """Start a session for *identity* and return its context.

        Expired sessions, looked up or not, are dropped first.
        """
        self.purge_expired()
        token = secrets.token_urlsafe(32)
        expires_at = time.monotonic() + self._ttl if self._ttl else None
        self._sessions[token] = _StoredSession(identity=identity, expires_at=expires_at)
        logger.debug("Session started for %s (TTL=%ss)", identity, self._ttl)
        return SessionContext(identity=identity, token=token)

    def resolve(self, token: Optional[str]) -> SessionContext:
        """Return the context for *token*, anonymous if unknown or expired."""
        if not token:
            return ANONYMOUS
        entry = self._sessions.get(token)
        if entry is None:
            return ANONYMOUS
        if entry.is_expired():
            self._sessions.pop(token, None)
            logger.info("Session for %s expired", entry.identity)
            return ANONYMOUS
        return SessionContext(identity=entry.identity, token=token)

    def revoke(self, token: Optional[str]) -> None:
        """End a session (no-op if absent)."""
        if token and self._sessions.pop(token, None) is not None:
            logger.debug("Session revoked")

    def purge_expired(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        expired = [token for token, entry in self._sessions.items() if entry.is_expired()]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug("Purged %d expired sessions", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
