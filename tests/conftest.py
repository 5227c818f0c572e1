"""
Shared test fixtures for the gateway test suite.

Key fixtures:
- rsa_private_pem / rsa_public_key: a throwaway RSA key pair for RS256 signing
- test_settings: Settings pointing at a fake ActionKit project
- actionkit: an in-memory fake of the ActionKit API (httpx.MockTransport)
- http_client: an httpx.AsyncClient wired to that fake
- gateway / gate: the objects under test, built on the fixtures above

Testing approach:
- test_auth.py / test_actionkit.py / test_tools.py: unit tests of the leaves
- test_session.py: the authentication state machine, one session at a time
- test_gateway.py: envelopes and routing at the protocol boundary
- test_server.py: the full FastMCP app over streamable HTTP (in-memory ASGI)
"""

import asyncio
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from actionkit_mcp.config import Settings
from actionkit_mcp.gateway import Gateway

PROJECT_ID = "proj-123"
API_BASE_URL = "https://actionkit.test"


# ---------------------------------------------------------------------------
# Signing keys
# ---------------------------------------------------------------------------
@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def rsa_public_key(rsa_key):
    return rsa_key.public_key()


@pytest.fixture
def test_settings(rsa_private_pem) -> Settings:
    return Settings(
        project_id=PROJECT_ID,
        signing_key=rsa_private_pem,
        api_base_url=API_BASE_URL,
        integrations=[],
        auth_portal_url="https://connect.test/{project_id}?user={user}",
        duplicate_tool_policy="skip",
    )


# ---------------------------------------------------------------------------
# Fake ActionKit API
# ---------------------------------------------------------------------------
def make_action(name: str, description: str = "", parameters: dict | None = None) -> dict:
    """An ActionKit catalog entry in the provider's function-descriptor shape."""
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description or f"Run {name}",
            "parameters": parameters
            or {
                "type": "object",
                "properties": {"channel": {"type": "string"}},
                "required": ["channel"],
            },
        },
    }


SLACK_CATALOG = {
    "actions": {
        "slack": [
            make_action("SLACK_SEND_MESSAGE", "Send a message to a Slack channel"),
            make_action("SLACK_LIST_CHANNELS", "List Slack channels"),
        ]
    }
}


class FakeActionKit:
    """
    Records every request and answers with the configured responses.

    Attributes are plain and mutable so each test can shape the provider:
    status codes, bodies, or a transport exception to raise.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.catalog_status = 200
        self.catalog_body: Any = SLACK_CATALOG
        self.action_status = 200
        self.action_body: Any = {"ok": True}
        self.raise_error: Exception | None = None
        # Seconds to stall every request, to widen race windows.
        self.delay = 0.0

    @property
    def catalog_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    @property
    def action_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_error is not None:
            raise self.raise_error
        if request.method == "GET":
            return _response(self.catalog_status, self.catalog_body)
        return _response(self.action_status, self.action_body)


def _response(status: int, body: Any) -> httpx.Response:
    if isinstance(body, (bytes, str)):
        return httpx.Response(status, content=body)
    return httpx.Response(status, json=body)


@pytest.fixture
def actionkit() -> FakeActionKit:
    return FakeActionKit()


@pytest.fixture
async def http_client(actionkit):
    async with httpx.AsyncClient(
        base_url=API_BASE_URL,
        transport=httpx.MockTransport(actionkit.handler),
    ) as client:
        yield client


@pytest.fixture
def gateway(test_settings, http_client) -> Gateway:
    return Gateway.from_settings(test_settings, http_client)


@pytest.fixture
def gate(gateway):
    return gateway.sessions.get("session-1")
