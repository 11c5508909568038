"""
End-to-end tests through ``create_services``: real SQLite store, real
identity client, ``httpx.MockTransport`` backend.

Run with:
    pytest tests/test_services.py -v
"""

import httpx
import pytest

from conftest import BASE_URL, RecordingBackend, csrf_response
from najjak.models.enums import AuthState, Role
from najjak.services import create_services, shutdown_services


def _http(backend):
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(backend))


@pytest.mark.asyncio
class TestServiceWiring:
    """Composition root and persistence across restarts."""

    async def test_login_persists_across_restart(self, config):
        backend = RecordingBackend({
            "GET /sanctum/csrf-cookie": csrf_response(),
            "POST /login": httpx.Response(200, json={
                "token": "bearer-5",
                "user": {"email": "mila@shop", "role": "admin", "name": "Mila Rossi"},
            }),
        })
        services = create_services(config, http_client=_http(backend))
        auth = services["auth_orchestrator"]
        assert auth.state is AuthState.ANONYMOUS

        result = await auth.login("mila@shop", "pw")
        assert result.success is True
        assert backend.requests[1].headers["X-XSRF-TOKEN"] == "tok=="
        await shutdown_services(services)

        # Second process: profile refresh sends the persisted bearer token.
        backend = RecordingBackend({
            "GET /api/user": httpx.Response(200, json={"email": "mila@shop", "role_id": 1}),
        })
        services = create_services(config, http_client=_http(backend))
        auth = services["auth_orchestrator"]
        assert auth.state is AuthState.AUTHENTICATED
        assert auth.current_user().first_name == "Mila"

        refreshed = await auth.refresh_profile()

        assert refreshed.user.role is Role.ADMIN
        assert backend.requests[0].headers["Authorization"] == "Bearer bearer-5"
        await shutdown_services(services)

    async def test_offline_login_against_unreachable_backend(self, config):
        backend = RecordingBackend({
            "GET /sanctum/csrf-cookie": httpx.ConnectError("connection refused"),
        })
        services = create_services(config, http_client=_http(backend))

        result = await services["auth_orchestrator"].login("user@example", "12345678")

        assert result.is_offline_login is True
        assert backend.paths() == ["GET /sanctum/csrf-cookie"]
        await shutdown_services(services)
