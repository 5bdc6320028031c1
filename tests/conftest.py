import json
import os
import sys
from typing import Any, Dict, List

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from asgi_lifespan import LifespanManager

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)
os.environ.setdefault("ANYIO_BACKEND", "asyncio")

from app.main import app  # noqa: E402
from app.api.deps.wallet_session import wallet_session_guard  # noqa: E402
from app.api.services.certificate_service import certificate_service  # noqa: E402
from app.api.services.issuance_orchestrator import issuance_orchestrator  # noqa: E402
from app.api.services.metadata_service import metadata_publisher  # noqa: E402
from app.api.services.user_service import user_service  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.infrastructure.algorand.algod_client import algod_gateway  # noqa: E402
from app.infrastructure.ipfs.ipfs_service import IPFSService  # noqa: E402
from tests.fakes import (  # noqa: E402
    FakeAlgodClient,
    FakeCertificateRepository,
    FakeCheckpointRepository,
    FakeUserRepository,
    Wallet,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakePinata:
    """Pinata pinning endpoint and gateway backed by a dict."""

    def __init__(self):
        self.pinned: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []
        self.fail_with: int = 0
        self.garbled = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            if self.fail_with:
                return httpx.Response(self.fail_with, text="Invalid authentication")
            if self.garbled:
                return httpx.Response(200, text="<html>Bad Gateway</html>")
            payload = json.loads(request.content)
            ipfs_hash = f"QmTestHash{len(self.pinned) + 1:04d}"
            self.pinned[ipfs_hash] = payload["pinataContent"]
            return httpx.Response(200, json={"IpfsHash": ipfs_hash, "PinSize": 512})

        ipfs_hash = request.url.path.rsplit("/", 1)[-1]
        if ipfs_hash not in self.pinned:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, json=self.pinned[ipfs_hash])


@pytest.fixture
def pinata(monkeypatch) -> FakePinata:
    fake = FakePinata()
    monkeypatch.setattr(settings, "PINATA_JWT", "test-jwt")
    service = IPFSService(transport=httpx.MockTransport(fake.handler))
    monkeypatch.setattr(metadata_publisher, "ipfs", service)
    monkeypatch.setattr(certificate_service, "ipfs", service)
    return fake


@pytest.fixture
def algod(monkeypatch) -> FakeAlgodClient:
    client = FakeAlgodClient()
    monkeypatch.setattr(algod_gateway, "_client", client)
    return client


@pytest.fixture
def certificates(monkeypatch) -> FakeCertificateRepository:
    repository = FakeCertificateRepository()
    monkeypatch.setattr(issuance_orchestrator, "certificates", repository)
    monkeypatch.setattr(certificate_service, "certificates", repository)
    return repository


@pytest.fixture
def users(monkeypatch) -> FakeUserRepository:
    repository = FakeUserRepository()
    monkeypatch.setattr(issuance_orchestrator, "users", repository)
    monkeypatch.setattr(certificate_service, "users", repository)
    monkeypatch.setattr(user_service, "users", repository)
    monkeypatch.setattr(wallet_session_guard, "users", repository)
    return repository


@pytest.fixture
def checkpoints(monkeypatch) -> FakeCheckpointRepository:
    repository = FakeCheckpointRepository()
    monkeypatch.setattr(issuance_orchestrator, "checkpoints", repository)
    return repository


@pytest.fixture
def stores(certificates, users, checkpoints):
    """All MongoDB repositories replaced by in-memory fakes."""
    return certificates, users, checkpoints


@pytest.fixture
def issuer() -> Wallet:
    return Wallet()


@pytest.fixture
def learner() -> Wallet:
    return Wallet()


@pytest.fixture
async def async_client():
    """Shared HTTPX async client with FastAPI lifespan handling."""
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    app.dependency_overrides.clear()
