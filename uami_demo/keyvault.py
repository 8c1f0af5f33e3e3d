"""
Key Vault secret retrieval.

Credential mode and vault URL come from the RuntimeConfigState snapshot taken
at call time, so the wizard can change them without a restart. One
``get_secret`` call per request, no retries; every outcome (including
failures) comes back as a SecretResponse with the credential path taken, a
matching Python snippet, and an echo of the resolved inputs.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from azure.core.exceptions import HttpResponseError
from azure.identity.aio import DefaultAzureCredential, ManagedIdentityCredential
from azure.keyvault.secrets.aio import SecretClient

from uami_demo.errors import (
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    TransientOrUnknownError,
    UamiDemoError,
)
from uami_demo.models import SecretResponse
from uami_demo.runtime_config import ConfigSnapshot, RuntimeConfigState, normalize_vault_url

logger = logging.getLogger(__name__)

REQUIRED_ROLE = "Key Vault Secrets User"

CredentialFactory = Callable[[bool, str | None], Any]
ClientFactory = Callable[[str, Any], Any]


def build_credential(use_managed_identity: bool, managed_identity_id: str | None) -> Any:
    """Pick the async credential for the current mode.

    Local/dev mode uses the developer chain (environment, workload identity,
    Azure CLI, PowerShell, developer CLI, cached IDE logins) without the
    managed identity endpoint, which hangs on machines outside Azure.
    """
    if not use_managed_identity:
        logger.info("Using DefaultAzureCredential (local dev / az login)")
        return DefaultAzureCredential(exclude_managed_identity_credential=True)
    if managed_identity_id:
        logger.info("Using User-Assigned ManagedIdentityCredential: %s", managed_identity_id)
        return ManagedIdentityCredential(client_id=managed_identity_id)
    logger.info("Using System-Assigned ManagedIdentityCredential")
    return ManagedIdentityCredential()


def build_secret_client(vault_url: str, credential: Any) -> SecretClient:
    return SecretClient(vault_url=vault_url, credential=credential)


def build_snippet(
    use_managed_identity: bool, vault_url: str, managed_identity_id: str | None, secret_name: str
) -> str:
    """Python equivalent of the credential path taken, for display in the UI."""
    fetch = (
        f"client = SecretClient(vault_url=\"{vault_url}\", credential=credential)\n"
        f"secret = client.get_secret(\"{secret_name}\")\n"
        "print(secret.value)\n"
    )
    if not use_managed_identity:
        if managed_identity_id:
            return (
                "# Using DefaultAzureCredential with an explicit User-Assigned Managed Identity client ID\n"
                "credential = DefaultAzureCredential(\n"
                f"    managed_identity_client_id=\"{managed_identity_id}\")\n\n" + fetch
            )
        return (
            "# Using DefaultAzureCredential (local development / az login)\n"
            "credential = DefaultAzureCredential()\n\n" + fetch
        )
    if managed_identity_id:
        return (
            "# Using User-Assigned Managed Identity\n"
            f"credential = ManagedIdentityCredential(client_id=\"{managed_identity_id}\")\n\n"
            + fetch
        )
    return (
        "# Using System-Assigned Managed Identity\n"
        "credential = ManagedIdentityCredential()\n\n" + fetch
    )


def classify_error(exc: Exception, secret_name: str, managed_identity_id: str | None) -> UamiDemoError:
    """Map an SDK failure onto the error taxonomy."""
    status = getattr(exc, "status_code", None) if isinstance(exc, HttpResponseError) else None
    if status == 403:
        return AuthorizationError(
            f"Access denied (403). Ensure the UAMI (ID: {managed_identity_id or 'system-assigned'}) "
            f"has the '{REQUIRED_ROLE}' role on the vault."
        )
    if status == 404:
        return NotFoundError(f"Secret '{secret_name}' not found in Key Vault.")
    return TransientOrUnknownError(f"Error retrieving secret: {exc}")


class KeyVaultService:
    """Retrieves secrets using the credential selected by the runtime config."""

    def __init__(
        self,
        runtime_config: RuntimeConfigState,
        *,
        enforce_identity_match: bool = False,
        credential_factory: CredentialFactory = build_credential,
        client_factory: ClientFactory = build_secret_client,
    ) -> None:
        self.runtime_config = runtime_config
        self.enforce_identity_match = enforce_identity_match
        self._credential_factory = credential_factory
        self._client_factory = client_factory

    async def get_secret(
        self,
        secret_name: str,
        managed_identity_id: str | None = None,
        key_vault_url_override: str | None = None,
    ) -> SecretResponse:
        config = self.runtime_config.snapshot()
        managed_identity_id = (
            managed_identity_id.strip()
            if managed_identity_id and managed_identity_id.strip()
            else None
        )
        vault_url = normalize_vault_url(
            key_vault_url_override
            if key_vault_url_override and key_vault_url_override.strip()
            else config.key_vault_url
        )
        request_input = json.dumps(
            {
                "secretName": secret_name,
                "managedIdentityId": managed_identity_id or "(system-assigned)",
                "keyVaultUrl": vault_url or "(not configured)",
                "credentialMode": config.credential_label,
            },
            indent=2,
        )

        def respond(value: str | None = None, error: UamiDemoError | None = None) -> SecretResponse:
            return SecretResponse(
                success=error is None,
                secretValue=value if error is None else None,
                errorMessage=str(error) if error is not None else None,
                credentialMethod=config.credential_label,
                identityUsed=managed_identity_id
                or ("System-assigned (default)" if error is None else "system-assigned"),
                codeSnippet=build_snippet(
                    config.use_managed_identity, vault_url or "", managed_identity_id, secret_name
                ),
                requestInput=request_input,
            )

        try:
            self._validate(config, vault_url, secret_name, managed_identity_id)
        except UamiDemoError as e:
            logger.warning("Secret request rejected (%s): %s", e.kind, e)
            return respond(error=e)

        try:
            value = await self._fetch(config, vault_url, secret_name, managed_identity_id)  # type: ignore[arg-type]
        except Exception as e:
            error = classify_error(e, secret_name, managed_identity_id)
            if isinstance(error, TransientOrUnknownError):
                logger.error("Error retrieving secret '%s'", secret_name, exc_info=True)
            else:
                logger.warning("Secret retrieval failed (%s): %s", error.kind, error)
            return respond(error=error)

        logger.info(
            "Retrieved secret '%s' via %s – identity: %s – vault: %s",
            secret_name,
            config.credential_label,
            managed_identity_id or "default",
            vault_url,
        )
        return respond(value=value)

    def _validate(
        self,
        config: ConfigSnapshot,
        vault_url: str | None,
        secret_name: str,
        managed_identity_id: str | None,
    ) -> None:
        if not vault_url:
            raise ConfigurationError(
                "Key Vault URL is not configured. Use the Setup wizard or set the "
                "UAMI_DEMO_KEY_VAULT_URL environment variable."
            )
        if not secret_name or not secret_name.strip():
            raise ConfigurationError("Secret name cannot be empty.")
        if (
            self.enforce_identity_match
            and config.validation_enabled
            and managed_identity_id
            and managed_identity_id.lower() != config.expected_uami_client_id.strip().lower()  # type: ignore[union-attr]
        ):
            raise AuthorizationError(
                f"UAMI Client ID '{managed_identity_id}' does not match the identity configured "
                "for this application. Only the authorised UAMI may access this Key Vault."
            )

    async def _fetch(
        self,
        config: ConfigSnapshot,
        vault_url: str,
        secret_name: str,
        managed_identity_id: str | None,
    ) -> str | None:
        credential = self._credential_factory(config.use_managed_identity, managed_identity_id)
        async with credential:
            async with self._client_factory(vault_url, credential) as client:
                secret = await client.get_secret(secret_name)
        return secret.value
