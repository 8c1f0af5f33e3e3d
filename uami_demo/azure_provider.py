"""
Azure-backed discovery provider.

Wraps the blocking azure-identity and azure-mgmt clients behind a small
interface the DiscoverySession drives from an executor:

    authenticate(tenant_id, on_device_code)   -> None (raises AuthenticationError)
    subscription_pages()                      -> iterator of lists of SubscriptionInfo
    identity_pages(subscription_id)           -> iterator of lists of IdentityInfo
    key_vault_pages(subscription_id)          -> iterator of lists of KeyVaultInfo

Every ``next()`` on a page iterator performs one HTTP page fetch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any, Protocol

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ChainedTokenCredential, DefaultAzureCredential, DeviceCodeCredential
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.msi import ManagedServiceIdentityClient
from azure.mgmt.resource import SubscriptionClient

from uami_demo.errors import AuthenticationError
from uami_demo.events import DeviceCode, IdentityInfo, KeyVaultInfo, SubscriptionInfo

logger = logging.getLogger(__name__)

ARM_SCOPE = "https://management.azure.com/.default"
DEVICE_CODE_TIMEOUT_SECONDS = 300

AUTH_REMEDIATION = (
    "Authentication failed. Make sure you are logged in: run 'az login' in a terminal, "
    "ensure Visual Studio / VS Code has cached credentials, or complete the device code sign-in."
)

DeviceCodeCallback = Callable[[DeviceCode], None]


class DiscoveryProvider(Protocol):
    def authenticate(self, tenant_id: str | None, on_device_code: DeviceCodeCallback) -> None: ...

    def subscription_pages(self) -> Iterator[list[SubscriptionInfo]]: ...

    def identity_pages(self, subscription_id: str) -> Iterator[list[IdentityInfo]]: ...

    def key_vault_pages(self, subscription_id: str) -> Iterator[list[KeyVaultInfo]]: ...


def extract_resource_group(resource_id: str | None) -> str | None:
    """Return the segment after ``resourceGroups`` in an ARM id, or None."""
    if not resource_id:
        return None
    parts = resource_id.split("/")
    try:
        idx = parts.index("resourceGroups")
    except ValueError:
        return None
    if idx + 1 >= len(parts) or not parts[idx + 1]:
        return None
    return parts[idx + 1]


def default_vault_url(name: str | None) -> str | None:
    return f"https://{name}.vault.azure.net/" if name else None


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def to_subscription(sub: Any) -> SubscriptionInfo:
    return SubscriptionInfo(
        id=sub.subscription_id,
        name=sub.display_name,
        tenant_id=_str_or_none(sub.tenant_id),
    )


def to_identity(identity: Any) -> IdentityInfo:
    return IdentityInfo(
        name=identity.name,
        client_id=_str_or_none(identity.client_id),
        principal_id=_str_or_none(identity.principal_id),
        resource_group=extract_resource_group(identity.id),
    )


def to_key_vault(vault: Any) -> KeyVaultInfo:
    properties = getattr(vault, "properties", None)
    vault_uri = getattr(properties, "vault_uri", None) if properties is not None else None
    return KeyVaultInfo(
        name=vault.name,
        url=vault_uri or default_vault_url(vault.name),
        resource_group=extract_resource_group(vault.id),
        location=_str_or_none(vault.location),
    )


class TenantScopedCredential:
    """Pins every token request of a sync credential to one tenant.

    ARM clients call ``get_token_info`` (or ``get_token`` on older
    azure-core) without a tenant, so the hint has to travel with the
    credential rather than with the first sign-in call.
    """

    def __init__(self, credential: Any, tenant_id: str) -> None:
        self._credential = credential
        self.tenant_id = tenant_id

    def get_token(self, *scopes: str, **kwargs: Any) -> Any:
        kwargs.setdefault("tenant_id", self.tenant_id)
        return self._credential.get_token(*scopes, **kwargs)

    def get_token_info(self, *scopes: str, options: dict[str, Any] | None = None) -> Any:
        merged: dict[str, Any] = dict(options or {})
        merged.setdefault("tenant_id", self.tenant_id)
        return self._credential.get_token_info(*scopes, options=merged)

    def close(self) -> None:
        self._credential.close()

    def __enter__(self) -> TenantScopedCredential:
        self._credential.__enter__()
        return self

    def __exit__(self, *args: Any) -> None:
        self._credential.__exit__(*args)


def _pages(paged: Any, convert: Callable[[Any], Any]) -> Iterator[list[Any]]:
    """Turn an azure-core ItemPaged into lazily fetched, converted pages."""
    try:
        for page in paged.by_page():
            yield [convert(item) for item in page]
    except ClientAuthenticationError as e:
        raise AuthenticationError(AUTH_REMEDIATION) from e


class AzureDiscoveryProvider:
    """Discovery against Azure Resource Manager with a device-code capable login.

    The credential chain tries environment, workload identity, Azure CLI,
    PowerShell and developer CLI logins first (managed identity probing is
    excluded so it cannot hang off Azure), then falls back to the device
    code flow, whose prompt is forwarded through ``on_device_code``.
    """

    def __init__(self) -> None:
        self._credential: ChainedTokenCredential | TenantScopedCredential | None = None

    def _require_credential(self) -> ChainedTokenCredential | TenantScopedCredential:
        if self._credential is None:
            raise RuntimeError("authenticate() must be called first")
        return self._credential

    def authenticate(self, tenant_id: str | None, on_device_code: DeviceCodeCallback) -> None:
        def prompt(verification_uri: str, user_code: str, expires_on: datetime) -> None:
            logger.info("Device code issued; waiting for sign-in at %s", verification_uri)
            on_device_code(
                DeviceCode(
                    code=user_code,
                    verification_url=verification_uri,
                    message=(
                        f"To sign in, open {verification_uri} in a browser "
                        f"and enter the code {user_code}."
                    ),
                    expires_at=expires_on.astimezone(UTC) if expires_on else None,
                )
            )

        tenant_kwargs: dict[str, Any] = {"tenant_id": tenant_id} if tenant_id else {}
        local = DefaultAzureCredential(
            exclude_managed_identity_credential=True,
            additionally_allowed_tenants=["*"],
        )
        device_code = DeviceCodeCredential(
            prompt_callback=prompt,
            timeout=DEVICE_CODE_TIMEOUT_SECONDS,
            **tenant_kwargs,
        )
        chain = ChainedTokenCredential(local, device_code)
        credential = TenantScopedCredential(chain, tenant_id) if tenant_id else chain
        try:
            credential.get_token(ARM_SCOPE)
        except ClientAuthenticationError as e:
            logger.warning("Authentication failed during discovery: %s", e)
            raise AuthenticationError(AUTH_REMEDIATION) from e
        self._credential = credential

    def subscription_pages(self) -> Iterator[list[SubscriptionInfo]]:
        client = SubscriptionClient(self._require_credential())
        return _pages(client.subscriptions.list(), to_subscription)

    def identity_pages(self, subscription_id: str) -> Iterator[list[IdentityInfo]]:
        client = ManagedServiceIdentityClient(self._require_credential(), subscription_id)
        return _pages(client.user_assigned_identities.list_by_subscription(), to_identity)

    def key_vault_pages(self, subscription_id: str) -> Iterator[list[KeyVaultInfo]]:
        client = KeyVaultManagementClient(self._require_credential(), subscription_id)
        return _pages(client.vaults.list_by_subscription(), to_key_vault)
