import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import toml

log = logging.getLogger(__name__)

SECRETS_PATH = os.getenv("SAMAJ_SECRETS_PATH", ".secrets.toml")
PRODUCTION_URL = "https://samaj-app-api.onrender.com"
DEFAULT_SECURE_STORE = "secure_store.db"


def load_secrets(path: Optional[str] = None) -> Dict[str, Any]:
    path = path or SECRETS_PATH
    try:
        return toml.load(path)
    except FileNotFoundError:
        return {}
    except toml.TomlDecodeError as e:
        log.error(f"Ignoring malformed secrets file {path}: {e}")
        return {}


def get_secret(key: str, default: Optional[str] = None, secrets: Optional[Dict[str, Any]] = None) -> Optional[str]:
    secrets = load_secrets() if secrets is None else secrets
    value = secrets.get(key)
    if value is None:
        value = os.getenv(key)
    return value if value is not None else default


def normalize_origin_to_api_base_url(origin: str) -> str:
    return f"{origin.strip().rstrip('/')}/api"


def resolve_api_base_url(base_url: Optional[str] = None, origin: Optional[str] = None) -> str:
    """Full base url wins over an origin; fall back to the production backend."""
    if base_url:
        return base_url.strip().rstrip("/")
    if origin:
        return normalize_origin_to_api_base_url(origin)
    return normalize_origin_to_api_base_url(PRODUCTION_URL)


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    firebase_api_key: str
    secure_store_path: str = DEFAULT_SECURE_STORE
    request_timeout: float = 30
    retry_timeout: float = 60
    log_level: str = "INFO"


def load_settings(path: Optional[str] = None) -> Settings:
    secrets = load_secrets(path)
    api_key = get_secret("FIREBASE_API_KEY", secrets=secrets)
    if not api_key:
        raise RuntimeError("FIREBASE_API_KEY is not configured (secrets file or environment)")

    return Settings(
        api_base_url=resolve_api_base_url(
            get_secret("API_BASE_URL", secrets=secrets),
            get_secret("API_ORIGIN", secrets=secrets),
        ),
        firebase_api_key=api_key,
        secure_store_path=get_secret("SECURE_STORE_PATH", DEFAULT_SECURE_STORE, secrets=secrets),
        request_timeout=float(get_secret("REQUEST_TIMEOUT", "30", secrets=secrets)),
        retry_timeout=float(get_secret("RETRY_TIMEOUT", "60", secrets=secrets)),
        log_level=str(get_secret("LOG_LEVEL", "INFO", secrets=secrets)).upper(),
    )
