"""
In-memory bearer token with lazy, single-flight hydration from secure storage.

The outgoing-request pipeline reads the token on every dispatch, so reads must be
cheap and synchronous once hydrated. Persistent storage is touched at most once per
hydration; concurrent callers share the same in-flight read.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Optional, Protocol

log = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"


class SecureStorage(Protocol):
    def get_secure_item(self, key: str) -> Optional[str]: ...

    def set_secure_item(self, key: str, value: str) -> None: ...

    def delete_secure_item(self, key: str) -> None: ...


class TokenStore:
    def __init__(self, storage: SecureStorage, key: str = TOKEN_KEY):
        self._storage = storage
        self._key = key
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._hydrated = False
        # Bumped by every authoritative write so a slow load cannot overwrite it.
        self._generation = 0
        self._inflight: Optional[Future] = None

    def set_token(self, token: Optional[str]) -> None:
        # Persisted under the lock so storage ends up in the same order as memory.
        with self._lock:
            self._token = token
            self._hydrated = True
            self._generation += 1
            try:
                if token is None:
                    self._storage.delete_secure_item(self._key)
                else:
                    self._storage.set_secure_item(self._key, token)
            except Exception:
                log.exception("Failed to mirror bearer token into secure storage")

    def get_token(self) -> Optional[str]:
        with self._lock:
            if self._hydrated:
                return self._token
            if self._inflight is not None:
                pending = self._inflight
                owner = False
            else:
                pending = Future()
                self._inflight = pending
                owner = True
            generation = self._generation

        if owner:
            self._load(pending, generation)

        try:
            loaded = pending.result()
        except Exception:
            # Not cached; the next call retries the read.
            log.exception("Failed to load bearer token from secure storage")
            return None

        with self._lock:
            if self._generation != generation:
                return self._token
            return loaded

    def _load(self, pending: Future, generation: int) -> None:
        try:
            value = self._storage.get_secure_item(self._key)
        except Exception as e:
            with self._lock:
                if self._inflight is pending:
                    self._inflight = None
            pending.set_exception(e)
            return

        with self._lock:
            if self._generation == generation:
                self._token = value
                self._hydrated = True
            if self._inflight is pending:
                self._inflight = None
        pending.set_result(value)

    def invalidate(self) -> None:
        """Drop the token after the backend rejected it as unauthorized."""
        # No reload may start before the persisted copy is gone.
        with self._lock:
            self._token = None
            self._hydrated = False
            self._generation += 1
            self._inflight = None
            try:
                self._storage.delete_secure_item(self._key)
            except Exception:
                log.exception("Failed to delete bearer token from secure storage")
        log.info("Bearer token invalidated after unauthorized response")
