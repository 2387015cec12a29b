"""Pytest fixtures for tagguard tests."""

import logging

import httpx
import pytest

from tagguard.config import GuardConfig
from tagguard.registry.client import RegistryClient

AUTH_URL = "https://auth.example.test/token"
REGISTRY_URL = "https://registry.example.test"


class FakeRegistry:
    """In-memory stand-in for a token endpoint plus a v2 registry.

    Attributes:
        existing: Set of "repository:tag" references that exist.
        token_status: Status code returned by the token endpoint.
        token_body: JSON body returned by the token endpoint (None for raw text).
        token_text: Raw body used when token_body is None.
        manifest_status: Forced status for every manifest request (None: by existence).
        fail_auth_transport / fail_manifest_transport: raise a transport error.
        requests: Every request received, in order.
    """

    def __init__(self) -> None:
        self.existing: set[str] = set()
        self.token_status = 200
        self.token_body: dict | list | None = {"token": "test-token-123", "expires_in": 300}
        self.token_text = ""
        self.manifest_status: int | None = None
        self.fail_auth_transport = False
        self.fail_manifest_transport = False
        self.timeout_manifest = False
        self.requests: list[httpx.Request] = []

    @property
    def auth_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "auth.example.test"]

    @property
    def manifest_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "registry.example.test"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "auth.example.test":
            if self.fail_auth_transport:
                raise httpx.ConnectError("connection refused", request=request)
            if self.token_body is None:
                return httpx.Response(self.token_status, text=self.token_text)
            return httpx.Response(self.token_status, json=self.token_body)

        if self.fail_manifest_transport:
            raise httpx.ConnectError("connection refused", request=request)
        if self.timeout_manifest:
            raise httpx.ReadTimeout("timed out", request=request)
        if self.manifest_status is not None:
            return httpx.Response(self.manifest_status)

        # /v2/<repository>/manifests/<tag>
        path = request.url.path
        repository, _, tag = path[len("/v2/"):].partition("/manifests/")
        if f"{repository}:{tag}" in self.existing:
            return httpx.Response(
                200,
                headers={"Docker-Content-Digest": "sha256:" + "a" * 64},
            )
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """A fake registry with no existing tags."""
    return FakeRegistry()


@pytest.fixture
def guard_config() -> GuardConfig:
    """Config pointing at the fake registry endpoints."""
    return GuardConfig(
        registry="liskl/base",
        auth_url=AUTH_URL,
        registry_url=REGISTRY_URL,
        timeout=2.0,
    )


@pytest.fixture
def registry_client(guard_config: GuardConfig, fake_registry: FakeRegistry):
    """RegistryClient wired to the fake registry."""
    client = RegistryClient(guard_config, transport=fake_registry.transport())
    yield client
    client.close()


@pytest.fixture
def test_environ() -> dict[str, str]:
    """Environment for CLI runs against the fake registry."""
    return {
        "TAGGUARD_AUTH_URL": AUTH_URL,
        "TAGGUARD_REGISTRY_URL": REGISTRY_URL,
    }


@pytest.fixture(autouse=True)
def reset_tagguard_logger():
    """Undo logging configuration done by CLI runs."""
    yield
    root = logging.getLogger("tagguard")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True
