"""Authentication gating rules (application layer).

Pure functions that turn backend responses and identity-provider failures into
control-flow decisions for the session reconciler.
"""

from typing import Any, Dict, Optional

from infrastructure.identity.firebase_identity_provider import IdentityProviderError
from use_cases.auth_errors import (
    ACCOUNT_REJECTED_MESSAGE,
    PENDING_APPROVAL_MESSAGE,
    SIGNUP_PENDING_MESSAGE,
    AccountRejectedError,
    LoginFailedError,
    PendingApprovalError,
    SessionUnavailableError,
    SignupFailedError,
)
from use_cases.session_models import UserRecord

# Sign-in failures that may belong to an account created before the identity provider.
MIGRATION_ERROR_CODES = frozenset({
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "USER_NOT_FOUND",
})


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_migration_candidate(error: Exception) -> bool:
    return isinstance(error, IdentityProviderError) and error.code in MIGRATION_ERROR_CODES


def _user_payload(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    user = response.get("user")
    return user if isinstance(user, dict) else None


def gate_migration_response(response: Dict[str, Any]) -> None:
    """Raise unless the legacy login succeeded and the account may sign in."""
    status = response.get("accountStatus")
    if status == "pending" or response.get("requiresApproval"):
        raise PendingApprovalError(response.get("message") or PENDING_APPROVAL_MESSAGE)
    if status == "rejected":
        raise AccountRejectedError(
            response.get("message") or ACCOUNT_REJECTED_MESSAGE,
            response.get("rejectionReason"),
        )
    if not response.get("success"):
        raise LoginFailedError(response.get("message") or "Login failed")


def gate_signup_response(response: Dict[str, Any]) -> None:
    """Raise unless the new account can sign in immediately."""
    user = _user_payload(response) or {}
    if (
        response.get("requiresApproval")
        or response.get("requiresAdminApproval")
        or user.get("accountStatus") == "pending"
    ):
        raise PendingApprovalError(response.get("message") or SIGNUP_PENDING_MESSAGE, user or None)
    if user.get("accountStatus") == "rejected":
        raise AccountRejectedError(
            response.get("message") or ACCOUNT_REJECTED_MESSAGE,
            user.get("rejectionReason") or response.get("rejectionReason"),
        )
    if not response.get("success"):
        raise SignupFailedError(response.get("message") or "Signup failed")


def parse_me_response(response: Dict[str, Any]) -> UserRecord:
    payload = _user_payload(response)
    if not response.get("success") or payload is None:
        raise SessionUnavailableError(response.get("message") or "Could not load your account")
    return UserRecord.from_payload(payload)


def gate_account_status(user: UserRecord) -> UserRecord:
    if user.account_status == "pending":
        raise PendingApprovalError(PENDING_APPROVAL_MESSAGE, user)
    if user.account_status == "rejected":
        raise AccountRejectedError(ACCOUNT_REJECTED_MESSAGE, user.rejection_reason)
    return user
