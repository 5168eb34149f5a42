import json
from unittest.mock import patch

from config import Settings
from infrastructure.identity.firebase_identity_provider import SESSION_KEY
from infrastructure.repositories.sqlite_secure_store import SQLiteSecureStore
from use_cases import bootstrap
from use_cases.session_models import SessionState


def make_settings(tmp_path):
    return Settings(
        api_base_url="https://api.example.com/api",
        firebase_api_key="key-123",
        secure_store_path=str(tmp_path / "secure.db"),
    )


@patch("use_cases.bootstrap.setup_observability")
def test_run_startup_without_persisted_session(mock_setup, tmp_path) -> None:
    result = bootstrap.run_startup(make_settings(tmp_path))

    assert result.status == "CONTINUE"
    assert result.planned_steps == (
        "setup_observability",
        "init_secure_store",
        "build_clients",
        "restore_identity_session",
        "start_reconciler",
    )
    assert result.reconciler.session.state == SessionState.UNAUTHENTICATED
    mock_setup.assert_called_once_with("INFO")


@patch("requests.request")
@patch("use_cases.bootstrap.setup_observability")
def test_run_startup_reconciles_persisted_session(_mock_setup, mock_request, tmp_path) -> None:
    settings = make_settings(tmp_path)
    store = SQLiteSecureStore(settings.secure_store_path)
    store.init_store()
    store.set_secure_item(SESSION_KEY, json.dumps({
        "uid": "uid-1",
        "email": "asha@example.com",
        "id_token": "id-1",
        "refresh_token": "refresh-1",
        "expires_at": 9_999_999_999.0,
    }))
    body = {"success": True, "user": {"id": "u1", "name": "Asha", "email": "asha@example.com",
                                      "role": "admin", "accountStatus": "approved"}}
    mock_request.return_value.status_code = 200
    mock_request.return_value.content = json.dumps(body).encode()
    mock_request.return_value.json.return_value = body

    result = bootstrap.run_startup(settings)

    session = result.reconciler.session
    assert session.state == SessionState.AUTHENTICATED_APPROVED
    assert session.is_admin is True
    headers = mock_request.call_args.kwargs["headers"]
    assert headers["Authorization"] == "Bearer id-1"
