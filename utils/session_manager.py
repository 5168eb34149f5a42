import logging
import threading
from dataclasses import replace
from typing import Callable, List

from use_cases.session_models import Session

"""
SESSION STATE CONTRACT

This module holds the single published session snapshot of the app.

Session fields:

bearer_token: str | None
    credential attached to outgoing requests
    owner: SessionReconciler

application_user: UserRecord | None
    last reconciled, approved account
    owner: SessionReconciler (local profile merges via update_user)

is_loading: bool
    True until the first reconciliation pass completes
    owner: SessionReconciler

Snapshots are immutable; every change publishes a new Session to subscribers.
"""

log = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]


class SessionManager:
    def __init__(self):
        self._lock = threading.RLock()
        self._session = Session()
        self._listeners: List[SessionListener] = []

    @property
    def current(self) -> Session:
        with self._lock:
            return self._session

    def publish(self, session: Session) -> None:
        with self._lock:
            self._session = session
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(session)
            except Exception:
                log.exception("Session listener failed")

    def update(self, **changes) -> Session:
        with self._lock:
            session = replace(self._session, **changes)
        self.publish(session)
        return session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
