"""
Shared fixtures for the najjak auth tests.

Every test gets its own SQLite file under ``tmp_path`` and a console-only
logger, so nothing touches the working directory.
"""

import os

# Keep loggers console-only; must be set before the cached config is built.
os.environ["LOG_FILE"] = ""

import httpx
import pytest

from najjak.config import AppConfig
from najjak.database import DatabaseManager
from najjak.logger import StructuredLogger
from najjak.services.identity_client import RemoteIdentityClient
from najjak.services.session_store import SessionStore

BASE_URL = "http://backend.test"


@pytest.fixture
def logger():
    """Console-only structured logger."""
    return StructuredLogger(name="najjak.tests", log_file="")


@pytest.fixture
def config(tmp_path):
    """Settings pointing at a fake backend and a temp store."""
    return AppConfig(
        BACKEND_BASE_URL=BASE_URL,
        LOCAL_STORE_PATH=tmp_path / "najjak.db",
        LOG_FILE="",
    )


@pytest.fixture
def db(config, logger):
    """Local database, closed after the test."""
    manager = DatabaseManager(sqlite_path=config.LOCAL_STORE_PATH, logger=logger)
    yield manager
    manager.close()


@pytest.fixture
def store(db, logger):
    """Hydrated session store on a fresh database."""
    session_store = SessionStore(db=db, logger=logger)
    session_store.hydrate()
    return session_store


class RecordingBackend:
    """``httpx.MockTransport`` handler that records requests.

    ``routes`` maps ``"METHOD /path"`` to either an ``httpx.Response``,
    a list of responses (consumed in order), or an exception instance to
    raise.  Unrouted requests get a 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        route = self.routes.get(f"{request.method} {request.url.path}")
        if isinstance(route, list):
            route = route.pop(0)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return route

    def paths(self):
        return [f"{r.method} {r.url.path}" for r in self.requests]


@pytest.fixture
def backend():
    """Empty recording backend; tests fill in ``backend.routes``."""
    return RecordingBackend()


@pytest.fixture
def make_client(config, logger, backend):
    """Factory for a ``RemoteIdentityClient`` over the recording backend."""
    created = []

    def _make(token_provider=None):
        http = httpx.AsyncClient(
            base_url=BASE_URL,
            transport=httpx.MockTransport(backend),
        )
        created.append(http)
        return RemoteIdentityClient(
            config=config,
            logger=logger,
            token_provider=token_provider,
            http_client=http,
        )

    return _make


def csrf_response():
    """Preflight response that sets an URL-encoded XSRF cookie."""
    return httpx.Response(
        204, headers={"Set-Cookie": "XSRF-TOKEN=tok%3D%3D; Path=/"},
    )
