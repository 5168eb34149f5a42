"""
Firebase Authentication client over the Identity Toolkit REST API.

Keeps the signed-in user's tokens in memory, persists them to secure storage so the
session survives restarts, and notifies subscribers whenever the session is created,
refreshed or destroyed.
"""

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional, Protocol

import requests

log = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
REFRESH_URL = "https://securetoken.googleapis.com/v1/token"
SESSION_KEY = "identity_session"
# Refresh slightly before expiry so a token never dies in flight.
REFRESH_MARGIN_SECONDS = 60

# Refresh failures that mean the session is gone for good.
SESSION_ENDING_CODES = {"TOKEN_EXPIRED", "USER_DISABLED", "USER_NOT_FOUND", "INVALID_REFRESH_TOKEN"}


class IdentityProviderError(Exception):
    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code


@dataclass(frozen=True)
class IdentitySession:
    uid: str
    email: str
    id_token: str
    refresh_token: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at - REFRESH_MARGIN_SECONDS


SessionCallback = Callable[[Optional[IdentitySession]], None]


class Subscription:
    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class IdentityProvider(Protocol):
    def on_session_change(self, callback: SessionCallback) -> Subscription: ...

    def sign_in(self, email: str, password: str) -> IdentitySession: ...

    def sign_out(self) -> None: ...

    def get_current_session_token(self, force_refresh: bool = False) -> Optional[str]: ...

    def current_session(self) -> Optional[IdentitySession]: ...


def _error_code(resp) -> IdentityProviderError:
    try:
        message = resp.json().get("error", {}).get("message") or ""
    except ValueError:
        message = ""
    # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters".
    code = message.split(" : ", 1)[0].strip() or f"HTTP_{resp.status_code}"
    return IdentityProviderError(code, message or None)


class FirebaseIdentityProvider:
    def __init__(self, api_key: str, storage=None, timeout: float = 10, clock: Callable[[], float] = time.time):
        self.api_key = api_key
        self.storage = storage
        self.timeout = timeout
        self.clock = clock
        self._lock = threading.RLock()
        self._session: Optional[IdentitySession] = None
        self._listeners: List[SessionCallback] = []

    def restore(self) -> Optional[IdentitySession]:
        """Load a persisted session without notifying subscribers."""
        if self.storage is None:
            return None
        raw = self.storage.get_secure_item(SESSION_KEY)
        if not raw:
            return None
        try:
            session = IdentitySession(**json.loads(raw))
        except (ValueError, TypeError):
            log.warning("Discarding unreadable persisted identity session")
            self.storage.delete_secure_item(SESSION_KEY)
            return None
        with self._lock:
            self._session = session
        log.info(f"Restored identity session for uid={session.uid}")
        return session

    def current_session(self) -> Optional[IdentitySession]:
        with self._lock:
            return self._session

    def on_session_change(self, callback: SessionCallback) -> Subscription:
        with self._lock:
            self._listeners.append(callback)
            current = self._session

        def cancel():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        subscription = Subscription(cancel)
        # Subscribers always learn the current state first.
        callback(current)
        return subscription

    def sign_in(self, email: str, password: str) -> IdentitySession:
        payload = {"email": email, "password": password, "returnSecureToken": True}
        resp = self._post(SIGN_IN_URL, json=payload)
        if resp.status_code != 200:
            error = _error_code(resp)
            log.info(f"Identity sign-in rejected: {error.code}")
            raise error

        data = resp.json()
        session = IdentitySession(
            uid=data["localId"],
            email=data.get("email", email),
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_at=self.clock() + int(data.get("expiresIn", 3600)),
        )
        self._replace(session)
        log.info(f"Identity sign-in succeeded for uid={session.uid}")
        return session

    def sign_out(self) -> None:
        with self._lock:
            had_session = self._session is not None
        if had_session:
            self._replace(None)
            log.info("Identity session signed out")

    def get_current_session_token(self, force_refresh: bool = False) -> Optional[str]:
        with self._lock:
            session = self._session
        if session is None:
            return None
        if not force_refresh and not session.is_expired(self.clock()):
            return session.id_token
        return self._refresh(session).id_token

    def _refresh(self, session: IdentitySession) -> IdentitySession:
        resp = self._post(
            REFRESH_URL,
            data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
        )
        if resp.status_code != 200:
            error = _error_code(resp)
            if error.code in SESSION_ENDING_CODES:
                log.warning(f"Identity session ended during refresh: {error.code}")
                self._replace(None)
            raise error

        data = resp.json()
        refreshed = IdentitySession(
            uid=data.get("user_id", session.uid),
            email=session.email,
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token", session.refresh_token),
            expires_at=self.clock() + int(data.get("expires_in", 3600)),
        )
        self._replace(refreshed)
        log.debug(f"Identity token refreshed for uid={refreshed.uid}")
        return refreshed

    def _post(self, url: str, **kwargs):
        try:
            return requests.post(url, params={"key": self.api_key}, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log.error(f"Identity provider unreachable: {e}")
            raise IdentityProviderError("NETWORK_REQUEST_FAILED", str(e)) from e

    def _replace(self, session: Optional[IdentitySession]) -> None:
        with self._lock:
            self._session = session
            listeners = list(self._listeners)

        if self.storage is not None:
            try:
                if session is None:
                    self.storage.delete_secure_item(SESSION_KEY)
                else:
                    self.storage.set_secure_item(SESSION_KEY, json.dumps(asdict(session)))
            except Exception:
                log.exception("Failed to persist identity session")

        for listener in listeners:
            try:
                listener(session)
            except Exception:
                log.exception("Identity session listener failed")
