"""Session DTOs shared across application layers."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional

Role = Literal["admin", "user"]
AccountStatus = Literal["approved", "pending", "rejected"]
VerificationStatus = Literal["verified", "unverified", "pending_admin"]


class SessionState(str, Enum):
    UNKNOWN = "unknown"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED_APPROVED = "authenticated_approved"


@dataclass(frozen=True)
class UserRecord:
    id: str
    name: str
    email: str
    role: Role = "user"
    phone: Optional[str] = None
    member_id: Optional[str] = None
    account_status: AccountStatus = "approved"
    verification_status: VerificationStatus = "unverified"
    rejection_reason: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UserRecord":
        """Build a record from the backend's camelCase user object."""
        user_id = payload.get("id") or payload.get("_id") or payload.get("uid")
        if not user_id:
            raise ValueError("User payload has no id")
        return cls(
            id=str(user_id),
            name=payload.get("name") or "",
            email=payload.get("email") or "",
            role="admin" if payload.get("role") == "admin" else "user",
            phone=payload.get("phone"),
            member_id=payload.get("memberId"),
            # Records created before the approval workflow carry no status.
            account_status=payload.get("accountStatus") or "approved",
            verification_status=payload.get("verificationStatus") or "unverified",
            rejection_reason=payload.get("rejectionReason"),
        )


@dataclass(frozen=True)
class Session:
    bearer_token: Optional[str] = None
    application_user: Optional[UserRecord] = None
    is_loading: bool = True

    @property
    def is_authenticated(self) -> bool:
        return self.application_user is not None and self.bearer_token is not None

    @property
    def is_admin(self) -> bool:
        return self.application_user is not None and is_admin(self.application_user)

    @property
    def state(self) -> SessionState:
        if self.is_authenticated:
            return SessionState.AUTHENTICATED_APPROVED
        if self.is_loading:
            return SessionState.UNKNOWN
        return SessionState.UNAUTHENTICATED


def is_admin(user: UserRecord) -> bool:
    return user.role == "admin"


def is_approved(user: UserRecord) -> bool:
    return user.account_status == "approved"
