"""
Reconciles the identity provider's session with the backend approval workflow.

Only an account the backend reports as approved is ever published as an
authenticated session. Every identity-provider notification and every explicit
operation takes a new attempt number; results of superseded attempts are not
published.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from infrastructure.gateway.api_client import UnauthorizedError
from infrastructure.gateway.backend_gateway import BackendGateway
from infrastructure.identity.firebase_identity_provider import (
    IdentityProvider,
    IdentitySession,
    Subscription,
)
from infrastructure.token_store import TokenStore
from use_cases.auth_errors import AuthError, LoginFailedError, SessionUnavailableError
from use_cases.auth_flow import (
    gate_account_status,
    gate_migration_response,
    gate_signup_response,
    is_migration_candidate,
    normalize_email,
    parse_me_response,
)
from use_cases.session_models import Session, UserRecord
from utils.session_manager import SessionListener, SessionManager

log = logging.getLogger(__name__)

LOCAL_PROFILE_FIELDS = frozenset({"name", "email", "phone", "member_id", "verification_status"})
MIN_PASSWORD_LENGTH = 6


class SessionReconciler:
    def __init__(
        self,
        identity: IdentityProvider,
        gateway: BackendGateway,
        token_store: TokenStore,
        sessions: Optional[SessionManager] = None,
    ):
        self.identity = identity
        self.gateway = gateway
        self.token_store = token_store
        self.sessions = sessions or SessionManager()
        self._lock = threading.RLock()
        self._attempt = 0
        self._explicit_ops = 0
        self._subscription: Optional[Subscription] = None

    @property
    def session(self) -> Session:
        return self.sessions.current

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        return self.sessions.subscribe(listener)

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self.identity.on_session_change(self._on_session_change)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # -- attempt bookkeeping -------------------------------------------------

    def _next_attempt(self) -> int:
        with self._lock:
            self._attempt += 1
            return self._attempt

    def _is_current(self, attempt: int) -> bool:
        with self._lock:
            return attempt == self._attempt

    @contextmanager
    def _explicit_operation(self):
        # Notifications fired by our own sign-in/sign-out only supersede older
        # attempts; the running operation reconciles by itself.
        with self._lock:
            self._explicit_ops += 1
        try:
            yield
        finally:
            with self._lock:
                self._explicit_ops -= 1

    def _install_token(self, attempt: int, token: str) -> bool:
        with self._lock:
            if attempt != self._attempt:
                return False
            self.token_store.set_token(token)
            return True

    def _apply(self, attempt: int, token: Optional[str], user: Optional[UserRecord]) -> bool:
        with self._lock:
            if attempt != self._attempt:
                log.debug(f"Discarding result of superseded reconciliation #{attempt}")
                return False
            if user is None:
                token = None
            self.token_store.set_token(token)
            self.sessions.publish(Session(bearer_token=token, application_user=user, is_loading=False))
            return True

    def _clear(self) -> None:
        self._apply(self._next_attempt(), None, None)

    def _force_sign_out(self) -> None:
        try:
            self.identity.sign_out()
        except Exception:
            log.exception("Forced identity sign-out failed")

    # -- reconciliation ------------------------------------------------------

    def _on_session_change(self, identity_session: Optional[IdentitySession]) -> None:
        with self._lock:
            attempt = self._next_attempt()
            deferred = self._explicit_ops > 0
        if deferred:
            log.debug(f"Identity session change #{attempt} left to the running operation")
            return

        try:
            self._reconcile(attempt)
        except AuthError as e:
            log.info(f"Session not established: {e.kind.value}")
        except Exception:
            log.exception("Session reconciliation failed")

    def _reconcile(self, attempt: Optional[int] = None) -> Optional[UserRecord]:
        """Run one pass of the approval gate; return the approved user, if any.

        Explicit operations pass no attempt. Theirs is taken once the identity
        token is in hand, so a silent refresh while fetching it (which notifies
        and supersedes older attempts) cannot discard their own result.
        """
        if self.identity.current_session() is None:
            self._apply(attempt or self._next_attempt(), None, None)
            return None

        try:
            token = self.identity.get_current_session_token()
        except Exception:
            self._apply(attempt or self._next_attempt(), None, None)
            raise
        if attempt is None:
            attempt = self._next_attempt()

        try:
            if not token:
                raise SessionUnavailableError("Identity provider returned no token")
            self._install_token(attempt, token)
            user = parse_me_response(self.gateway.get_me())
        except Exception:
            # Fail closed: an unverified account is never treated as signed in.
            self._apply(attempt, None, None)
            raise

        try:
            gate_account_status(user)
        except AuthError:
            log.info(f"Account {user.id} is {user.account_status}; revoking identity session")
            was_current = self._is_current(attempt)
            self._force_sign_out()
            if was_current:
                self._clear()
            raise

        if self._apply(attempt, token, user):
            log.info(f"Session established for user {user.id} ({user.role})")
        return user

    # -- public operations ---------------------------------------------------

    def login(self, email: str, password: str) -> UserRecord:
        email = normalize_email(email)
        with self._explicit_operation():
            try:
                self.identity.sign_in(email, password)
            except Exception as e:
                if not is_migration_candidate(e):
                    raise
                log.info(f"Identity sign-in failed ({e.code}); trying legacy account migration")
                self._migrate_legacy_account(email, password)
                self.identity.sign_in(email, password)

            user = self._reconcile()
        if user is None:
            raise LoginFailedError("Login failed")
        return user

    def _migrate_legacy_account(self, email: str, password: str) -> None:
        response = self.gateway.login(email, password)
        gate_migration_response(response)
        log.info("Legacy account migrated to the identity provider")

    def signup(self, data: Dict[str, Any]) -> UserRecord:
        email = normalize_email(data.get("email", ""))
        password = data.get("password", "")
        with self._explicit_operation():
            response = self.gateway.signup({**data, "email": email})
            gate_signup_response(response)
            self.identity.sign_in(email, password)
            user = self._reconcile()
        if user is None:
            raise LoginFailedError("Signup succeeded but sign-in did not complete")
        return user

    def logout(self) -> None:
        try:
            with self._explicit_operation():
                if self.session.bearer_token:
                    try:
                        self.gateway.logout()
                    except Exception as e:
                        log.warning(f"Backend logout failed: {e}")
                self.identity.sign_out()
        except Exception:
            log.exception("Logout error")
        finally:
            try:
                self._clear()
            except Exception:
                log.exception("Failed to clear local session")

    def update_user(self, **fields) -> Optional[UserRecord]:
        unknown = set(fields) - LOCAL_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields locally: {', '.join(sorted(unknown))}")
        with self._lock:
            current = self.sessions.current.application_user
            if current is None:
                return None
            updated = replace(current, **fields)
            self.sessions.update(application_user=updated)
        return updated

    def refresh_user(self) -> Optional[UserRecord]:
        if self.identity.current_session() is None:
            return None
        try:
            with self._explicit_operation():
                return self._reconcile()
        except UnauthorizedError:
            log.info("Backend rejected the session token; logging out")
            self.logout()
            return None

    def update_profile(self, member_id: Optional[str] = None, phone: Optional[str] = None) -> Dict[str, Any]:
        response = self.gateway.update_profile(member_id=member_id, phone=phone)
        if response.get("success"):
            changes = {}
            if member_id is not None:
                changes["member_id"] = member_id
            if phone is not None:
                changes["phone"] = phone
            self.update_user(**changes)
        return response

    def request_password_reset(self, email: str) -> Dict[str, Any]:
        email = normalize_email(email)
        if not email:
            raise ValueError("Please enter your email")
        return self.gateway.forgot_password(email)

    def reset_password(self, reset_token: str, password: str, confirm_password: str) -> Dict[str, Any]:
        if not reset_token:
            raise ValueError("Invalid reset token")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if password != confirm_password:
            raise ValueError("Passwords do not match")
        return self.gateway.reset_password(reset_token, password, confirm_password)
