"""Tagged errors raised when an account cannot be turned into a session."""

from enum import Enum
from typing import Any, Optional

PENDING_APPROVAL_MESSAGE = (
    "Your account is pending admin approval. You will be notified within 48 hours."
)
SIGNUP_PENDING_MESSAGE = (
    "Your signup request has been received. Our admin team will review your application "
    "within 48 hours. You will be notified once approved."
)
ACCOUNT_REJECTED_MESSAGE = "Your account registration was not approved."


class AuthErrorKind(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    ACCOUNT_REJECTED = "account_rejected"
    LOGIN_FAILED = "login_failed"
    SIGNUP_FAILED = "signup_failed"
    SESSION_UNAVAILABLE = "session_unavailable"


class AuthError(Exception):
    kind: AuthErrorKind = AuthErrorKind.LOGIN_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PendingApprovalError(AuthError):
    kind = AuthErrorKind.PENDING_APPROVAL

    def __init__(self, message: str = PENDING_APPROVAL_MESSAGE, user: Optional[Any] = None):
        super().__init__(message)
        self.user = user


class AccountRejectedError(AuthError):
    kind = AuthErrorKind.ACCOUNT_REJECTED

    def __init__(self, message: str = ACCOUNT_REJECTED_MESSAGE, rejection_reason: Optional[str] = None):
        super().__init__(message)
        self.rejection_reason = rejection_reason


class LoginFailedError(AuthError):
    kind = AuthErrorKind.LOGIN_FAILED


class SignupFailedError(AuthError):
    kind = AuthErrorKind.SIGNUP_FAILED


class SessionUnavailableError(AuthError):
    """The identity provider signed in but the backend could not confirm the account."""

    kind = AuthErrorKind.SESSION_UNAVAILABLE
