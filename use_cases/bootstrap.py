"""Startup orchestration: wire the session client and run the first reconciliation."""

from dataclasses import dataclass
from typing import Literal, Optional, Tuple

import config
from infrastructure.gateway.api_client import ApiClient
from infrastructure.gateway.backend_gateway import BackendGateway
from infrastructure.identity.firebase_identity_provider import FirebaseIdentityProvider
from infrastructure.observability import setup_observability
from infrastructure.repositories.sqlite_secure_store import SQLiteSecureStore
from infrastructure.token_store import TokenStore
from use_cases.session_reconciler import SessionReconciler

StartupStatus = Literal["CONTINUE", "STOP"]


@dataclass(frozen=True)
class StartupResult:
    """Result contract for startup/bootstrap orchestration."""

    status: StartupStatus
    planned_steps: Tuple[str, ...]
    reconciler: Optional[SessionReconciler] = None


def run_startup(settings: Optional[config.Settings] = None) -> StartupResult:
    """Build the session client from settings and start listening for identity changes."""
    executed_steps = []

    settings = settings or config.load_settings()
    setup_observability(settings.log_level)
    executed_steps.append("setup_observability")

    storage = SQLiteSecureStore(settings.secure_store_path)
    storage.init_store()
    executed_steps.append("init_secure_store")

    token_store = TokenStore(storage)
    client = ApiClient(
        settings.api_base_url,
        token_store,
        timeout=settings.request_timeout,
        retry_timeout=settings.retry_timeout,
    )
    gateway = BackendGateway(client)
    identity = FirebaseIdentityProvider(settings.firebase_api_key, storage=storage)
    executed_steps.append("build_clients")

    # Restore before subscribing so the first notification carries the persisted session.
    identity.restore()
    executed_steps.append("restore_identity_session")

    reconciler = SessionReconciler(identity, gateway, token_store)
    reconciler.start()
    executed_steps.append("start_reconciler")

    return StartupResult(status="CONTINUE", planned_steps=tuple(executed_steps), reconciler=reconciler)
