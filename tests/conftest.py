"""
Shared fixtures for the UAMI demo test suite.

Provides settings, runtime state, a scripted in-memory discovery provider,
mock Key Vault clients, and an async HTTP client over the FastAPI app.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from uami_demo.app import create_app
from uami_demo.config import Settings
from uami_demo.events import DeviceCode, IdentityInfo, KeyVaultInfo, SubscriptionInfo
from uami_demo.keyvault import KeyVaultService
from uami_demo.runtime_config import RuntimeConfigState

SUB_A = SubscriptionInfo(id="sub-a", name="Sub A", tenant_id="tenant-a")
SUB_B = SubscriptionInfo(id="sub-b", name="Sub B", tenant_id="tenant-b")
UAMI_1 = IdentityInfo(name="uami-1", client_id="cid-1", principal_id="pid-1", resource_group="rg1")
UAMI_2 = IdentityInfo(name="uami-2", client_id="cid-2", principal_id="pid-2", resource_group=None)
KV_1 = KeyVaultInfo(
    name="kv1", url="https://kv1.vault.azure.net/", resource_group="rg1", location="eastus"
)


class FakeDiscoveryProvider:
    """Scripted DiscoveryProvider. Pages are served ``page_size`` items at a time."""

    def __init__(
        self,
        subscriptions: list[SubscriptionInfo] | None = None,
        identities: list[IdentityInfo] | None = None,
        key_vaults: list[KeyVaultInfo] | None = None,
        *,
        device_code: DeviceCode | None = None,
        auth_error: Exception | None = None,
        identity_error: Exception | None = None,
        page_size: int = 1,
    ) -> None:
        self.subscriptions = [SUB_A, SUB_B] if subscriptions is None else subscriptions
        self.identities = [UAMI_1, UAMI_2] if identities is None else identities
        self.key_vaults = [KV_1] if key_vaults is None else key_vaults
        self.device_code = device_code
        self.auth_error = auth_error
        self.identity_error = identity_error
        self.page_size = page_size
        self.tenant_hint: str | None = None
        self.auth_thread: str | None = None
        self.identity_calls: list[str] = []
        self.key_vault_calls: list[str] = []
        # Set by block_identities(); identity paging waits on it
        self.entered_identities = threading.Event()
        self.release_identities: threading.Event | None = None

    def block_identities(self) -> threading.Event:
        self.release_identities = threading.Event()
        return self.release_identities

    def _paged(self, items: list) -> Iterator[list]:
        for i in range(0, len(items), self.page_size):
            yield items[i : i + self.page_size]

    def authenticate(self, tenant_id, on_device_code) -> None:
        self.tenant_hint = tenant_id
        self.auth_thread = threading.current_thread().name
        if self.device_code is not None:
            on_device_code(self.device_code)
        if self.auth_error is not None:
            raise self.auth_error

    def subscription_pages(self) -> Iterator[list[SubscriptionInfo]]:
        return self._paged(self.subscriptions)

    def identity_pages(self, subscription_id: str) -> Iterator[list[IdentityInfo]]:
        self.identity_calls.append(subscription_id)

        def pages():
            self.entered_identities.set()
            if self.release_identities is not None:
                self.release_identities.wait(5)
            if self.identity_error is not None:
                raise self.identity_error
            yield from self._paged(self.identities)

        return pages()

    def key_vault_pages(self, subscription_id: str) -> Iterator[list[KeyVaultInfo]]:
        self.key_vault_calls.append(subscription_id)
        return self._paged(self.key_vaults)


@pytest.fixture
def device_code() -> DeviceCode:
    return DeviceCode(
        code="ABCD-1234",
        verification_url="https://microsoft.com/devicelogin",
        message="To sign in, open https://microsoft.com/devicelogin and enter ABCD-1234.",
        expires_at=datetime(2026, 1, 1, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def fake_provider() -> FakeDiscoveryProvider:
    return FakeDiscoveryProvider()


@pytest.fixture
def make_provider():
    return FakeDiscoveryProvider


@pytest.fixture
def settings() -> Settings:
    return Settings(
        key_vault_url="https://stored.vault.azure.net",
        expected_uami_client_id="expected-cid",
        tenant_id="tenant-x",
        use_default_credential=False,
        environment="Testing",
    )


@pytest.fixture
def runtime_config(settings) -> RuntimeConfigState:
    return RuntimeConfigState.from_settings(settings)


def _make_secret_client(value: str | None = "s3cr3t", error: Exception | None = None) -> MagicMock:
    """A mock async SecretClient usable with ``async with``."""
    client = MagicMock()
    client.__aenter__.return_value = client
    if error is not None:
        client.get_secret = AsyncMock(side_effect=error)
    else:
        client.get_secret = AsyncMock(return_value=SimpleNamespace(name="n", value=value))
    return client


@pytest.fixture
def secret_client() -> MagicMock:
    return _make_secret_client()


@pytest.fixture
def credential_factory() -> MagicMock:
    """Records (use_managed_identity, managed_identity_id) and returns a mock credential."""
    return MagicMock(side_effect=lambda use_mi, mi_id: MagicMock(name=f"cred-{use_mi}-{mi_id}"))


@pytest.fixture
def client_factory(secret_client) -> MagicMock:
    return MagicMock(return_value=secret_client)


@pytest.fixture
def keyvault_service(runtime_config, credential_factory, client_factory) -> KeyVaultService:
    return KeyVaultService(
        runtime_config,
        credential_factory=credential_factory,
        client_factory=client_factory,
    )


@pytest.fixture
def app(settings, runtime_config, keyvault_service, fake_provider):
    return create_app(
        settings,
        runtime_config=runtime_config,
        keyvault_service=keyvault_service,
        discovery_provider_factory=lambda: fake_provider,
    )


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client wrapping the app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_secret_client():
    return _make_secret_client
