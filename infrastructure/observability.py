"""
Centralized Observability Infrastructure.
Provides structured logging setup and Sentry SDK initialization
governed entirely by environment variables.
"""

import os
import logging
import re
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

# Patterns to scrub in logs and Sentry events
SENSITIVE_PATTERNS = [
    (re.compile(r"(Bearer\s+)[A-Za-z0-9_\-\.]+"), r"\1[REDACTED]"),  # Authorization headers
    (re.compile(r"eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"), "[REDACTED]"),  # JWT id tokens
    (re.compile(r"([a-zA-Z0-9_\-]{30,})"), "[REDACTED]"),  # Refresh tokens, api keys
]
SENSITIVE_KEYS = {"password", "confirmPassword", "token", "idToken", "refreshToken", "refresh_token", "id_token"}


def _mask_string(val: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        val = pattern.sub(replacement, val)
    return val


def _recursive_scrub(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: "[REDACTED]" if k in SENSITIVE_KEYS else _recursive_scrub(v)
            for k, v in obj.items()
        }
    elif isinstance(obj, list):
        return [_recursive_scrub(i) for i in obj]
    elif isinstance(obj, str):
        return _mask_string(obj)
    return obj


def _scrub_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sentry before_send hook. Recursively scrubs tokens and passwords
    from stacktrace locals and request payloads before they leave the device.
    """
    if "exception" in event and "values" in event["exception"]:
        for exc in event["exception"]["values"]:
            frames = exc.get("stacktrace", {}).get("frames", [])
            for frame in frames:
                if "vars" in frame:
                    frame["vars"] = _recursive_scrub(frame["vars"])
    if "request" in event:
        event["request"] = _recursive_scrub(event["request"])
    if "breadcrumbs" in event:
        event["breadcrumbs"] = _recursive_scrub(event["breadcrumbs"])
    return event


def setup_observability(log_level: Optional[str] = None) -> None:
    """
    Initializes global system logging and Sentry (if DSN is present).
    Should be called once at application startup.
    """
    log_level_str = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level_str, logging.INFO)

    # Complete format: [2026-02-27 15:00:00] INFO - module.name: The message
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    sentry_dsn = os.getenv("SENTRY_DSN")
    if sentry_dsn:
        import sentry_sdk

        sentry_env = os.getenv("SENTRY_ENV", "development")
        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=sentry_env,
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
            send_default_pii=False,
            before_send=_scrub_sensitive_data
        )
        log.info(f"Sentry SDK initialized (env: {sentry_env})")
    else:
        log.info("SENTRY_DSN not provided. Running without Sentry.")

    # We also quiet down noisy third-party loggers here
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
