"""
Authentication Services Package.

The ``create_services()`` factory is the single composition root: it
opens the local store, hydrates the session store, builds the remote
identity client and the orchestrator, and returns them in a typed dict.
UI code receives the container (or just the orchestrator) by reference;
nothing in this package is a module-level singleton.

Usage::

    services = create_services(get_config())
    auth = services["auth_orchestrator"]
    await auth.refresh_profile()
    ...
    await shutdown_services(services)
"""

from __future__ import annotations

from typing import Optional, TypedDict

import httpx

from najjak.config import AppConfig, get_config
from najjak.database import DatabaseManager
from najjak.logger import get_logger
from najjak.services.auth_service import AuthOrchestrator
from najjak.services.identity_client import RemoteIdentityClient
from najjak.services.session_store import SessionStore


class ServiceContainer(TypedDict):
    """Typed container for the wired auth stack."""

    database: DatabaseManager
    session_store: SessionStore
    identity_client: RemoteIdentityClient
    auth_orchestrator: AuthOrchestrator


def create_services(
    config: Optional[AppConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ServiceContainer:
    """Wire the database, session store, identity client and orchestrator.

    Parameters
    ----------
    config:
        Settings to use; defaults to :func:`get_config`.
    http_client:
        Optional pre-built ``httpx.AsyncClient`` (tests, custom
        transports).  When omitted the identity client builds its own.
    """
    config = config or get_config()

    db = DatabaseManager(
        sqlite_path=config.LOCAL_STORE_PATH,
        logger=get_logger("najjak.database"),
    )

    store = SessionStore(db=db, logger=get_logger("najjak.session_store"))
    store.hydrate()

    client = RemoteIdentityClient(
        config=config,
        logger=get_logger("najjak.identity_client"),
        token_provider=store.get_token,
        http_client=http_client,
    )

    orchestrator = AuthOrchestrator(
        store=store,
        client=client,
        logger=get_logger("najjak.auth"),
    )

    return ServiceContainer(
        database=db,
        session_store=store,
        identity_client=client,
        auth_orchestrator=orchestrator,
    )


async def shutdown_services(services: ServiceContainer) -> None:
    """Release everything ``create_services`` opened, in reverse order."""
    await services["identity_client"].aclose()
    services["session_store"].dispose()
    services["database"].close()
