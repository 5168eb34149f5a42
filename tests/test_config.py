import pytest

import config


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("API_BASE_URL", "API_ORIGIN", "FIREBASE_API_KEY", "SECURE_STORE_PATH",
                "REQUEST_TIMEOUT", "RETRY_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_resolve_api_base_url_precedence():
    assert config.resolve_api_base_url("https://staging.example.com/api/ ", "https://ignored") == \
        "https://staging.example.com/api"
    assert config.resolve_api_base_url(None, "https://local.example.com//") == "https://local.example.com/api"
    assert config.resolve_api_base_url() == "https://samaj-app-api.onrender.com/api"


def test_get_secret_prefers_file_over_env(clean_env):
    clean_env.setenv("FIREBASE_API_KEY", "from-env")

    assert config.get_secret("FIREBASE_API_KEY", secrets={"FIREBASE_API_KEY": "from-file"}) == "from-file"
    assert config.get_secret("FIREBASE_API_KEY", secrets={}) == "from-env"
    assert config.get_secret("MISSING", "fallback", secrets={}) == "fallback"


def test_load_settings_from_toml(tmp_path, clean_env):
    secrets_file = tmp_path / "secrets.toml"
    secrets_file.write_text(
        'FIREBASE_API_KEY = "key-123"\n'
        'API_ORIGIN = "http://192.168.1.251:3001"\n'
        'REQUEST_TIMEOUT = 15\n'
        'LOG_LEVEL = "debug"\n'
    )

    settings = config.load_settings(str(secrets_file))

    assert settings.firebase_api_key == "key-123"
    assert settings.api_base_url == "http://192.168.1.251:3001/api"
    assert settings.request_timeout == 15.0
    assert settings.retry_timeout == 60.0
    assert settings.log_level == "DEBUG"


def test_load_settings_requires_api_key(tmp_path, clean_env):
    with pytest.raises(RuntimeError, match="FIREBASE_API_KEY"):
        config.load_settings(str(tmp_path / "missing.toml"))


def test_malformed_secrets_file_is_ignored(tmp_path):
    broken = tmp_path / "broken.toml"
    broken.write_text("[unterminated\nkey = ")

    assert config.load_secrets(str(broken)) == {}
