"""Application layer contracts for orchestrating session flows."""

from .auth_errors import (
    AccountRejectedError,
    AuthError,
    AuthErrorKind,
    LoginFailedError,
    PendingApprovalError,
    SessionUnavailableError,
    SignupFailedError,
)
from .session_models import (
    AccountStatus,
    Role,
    Session,
    SessionState,
    UserRecord,
    VerificationStatus,
    is_admin,
    is_approved,
)

__all__ = [
    "AccountRejectedError",
    "AccountStatus",
    "AuthError",
    "AuthErrorKind",
    "LoginFailedError",
    "PendingApprovalError",
    "Role",
    "Session",
    "SessionState",
    "SessionUnavailableError",
    "SignupFailedError",
    "UserRecord",
    "VerificationStatus",
    "is_admin",
    "is_approved",
]
