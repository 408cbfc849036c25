"""In-memory key session with optional auto-lock.

KeySession wraps another KeyProvider and keeps the key it returns in memory so
the keyring or Argon2 work happens once rather than on every store call. With
a TTL the cached key expires and is fetched again on the next call; lock()
drops it immediately.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

from .providers import KeyProvider


class KeySession(KeyProvider):
    def __init__(self, provider: KeyProvider, ttl_seconds: Optional[float] = None):
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self._key: Optional[bytearray] = None
        self._expires_at: Optional[float] = None
        # re-entrant: get_key calls lock() while holding it
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self.provider.name

    @property
    def unlocked(self) -> bool:
        if self._key is None:
            return False
        return self._expires_at is None or time.time() <= self._expires_at

    def get_key(self) -> bytes:
        """Return the cached key, refreshing it from the provider when locked or expired."""
        with self._lock:
            if not self.unlocked:
                self.lock()
                self._key = bytearray(self.provider.get_key())
                if self.ttl_seconds is not None:
                    self._expires_at = time.time() + float(self.ttl_seconds)
            return bytes(self._key)

    def extend(self, extra_seconds: float) -> None:
        """Extend session TTL by extra_seconds if unlocked."""
        with self._lock:
            if not self.unlocked:
                raise RuntimeError("Session is locked")
            if self._expires_at is not None:
                self._expires_at += float(extra_seconds)

    def lock(self) -> None:
        """Clear the cached key from memory (best-effort) and lock the session."""
        with self._lock:
            try:
                if self._key is not None:
                    for i in range(len(self._key)):
                        self._key[i] = 0
            finally:
                self._key = None
                self._expires_at = None
