import pytest

from use_cases.session_models import Session, SessionState, UserRecord, is_admin, is_approved


def make_user(**overrides):
    fields = dict(id="u1", name="Asha", email="asha@example.com", role="user", account_status="approved")
    fields.update(overrides)
    return UserRecord(**fields)


def test_is_admin() -> None:
    assert is_admin(make_user(role="admin")) is True
    assert is_admin(make_user(role="user")) is False


def test_is_approved() -> None:
    assert is_approved(make_user(account_status="approved")) is True
    assert is_approved(make_user(account_status="pending")) is False
    assert is_approved(make_user(account_status="rejected")) is False


def test_from_payload_reads_camel_case() -> None:
    user = UserRecord.from_payload({
        "_id": "665f1c",
        "name": "Ravi Shah",
        "email": "ravi@example.com",
        "role": "admin",
        "memberId": "M-7",
        "accountStatus": "rejected",
        "verificationStatus": "pending_admin",
        "rejectionReason": "duplicate account",
    })

    assert user.id == "665f1c"
    assert user.role == "admin"
    assert user.member_id == "M-7"
    assert user.account_status == "rejected"
    assert user.verification_status == "pending_admin"
    assert user.rejection_reason == "duplicate account"


def test_from_payload_defaults_legacy_records_to_approved() -> None:
    user = UserRecord.from_payload({"id": 12, "name": "Old Member", "email": "old@example.com"})

    assert user.id == "12"
    assert user.account_status == "approved"
    assert user.role == "user"


def test_from_payload_requires_id() -> None:
    with pytest.raises(ValueError):
        UserRecord.from_payload({"name": "Nobody"})


def test_session_states() -> None:
    assert Session().state == SessionState.UNKNOWN
    assert Session(is_loading=False).state == SessionState.UNAUTHENTICATED

    approved = Session(bearer_token="tok", application_user=make_user(role="admin"), is_loading=False)
    assert approved.state == SessionState.AUTHENTICATED_APPROVED
    assert approved.is_authenticated is True
    assert approved.is_admin is True

    # A user without a token is not a usable session.
    assert Session(application_user=make_user(), is_loading=False).is_authenticated is False
