"""
Live runtime configuration.

Seeded from Settings on startup and updated by the setup wizard without a
restart. State is in memory only and resets when the process exits.

All reads and writes go through one lock on the whole object, so a snapshot
is always either fully before or fully after any single mutation.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uami_demo.config import Settings

PLACEHOLDER_PREFIX = "<"


def is_real(value: str | None) -> bool:
    """True for a non-blank value that is not an unfilled ``<...>`` placeholder."""
    if value is None or not value.strip():
        return False
    return not value.lstrip().startswith(PLACEHOLDER_PREFIX)


def normalize_vault_url(url: str | None) -> str | None:
    """Trim and end with exactly one ``/``. Blank becomes None."""
    if url is None or not url.strip():
        return None
    return url.strip().rstrip("/") + "/"


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _clean(value: str | None) -> str | None:
    return None if _blank(value) else value.strip()  # type: ignore[union-attr]


@dataclass(frozen=True)
class ConfigSnapshot:
    """Point-in-time copy of the runtime configuration."""

    key_vault_url: str | None = None
    expected_uami_client_id: str | None = None
    tenant_id: str | None = None
    use_managed_identity: bool = False

    @property
    def validation_enabled(self) -> bool:
        return not _blank(self.expected_uami_client_id)

    @property
    def is_configured(self) -> bool:
        return not _blank(self.key_vault_url) and not _blank(self.expected_uami_client_id)

    @property
    def credential_label(self) -> str:
        return "ManagedIdentityCredential" if self.use_managed_identity else "DefaultAzureCredential"

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyVaultUrl": self.key_vault_url or "",
            "expectedUamiClientId": self.expected_uami_client_id or "",
            "tenantId": self.tenant_id or "",
            "useManagedIdentity": self.use_managed_identity,
            "validationEnabled": self.validation_enabled,
            "isConfigured": self.is_configured,
        }


class RuntimeConfigState:
    """Thread-safe holder of the live configuration."""

    def __init__(
        self,
        key_vault_url: str | None = None,
        expected_uami_client_id: str | None = None,
        tenant_id: str | None = None,
        use_managed_identity: bool = False,
    ) -> None:
        self._lock = threading.Lock()
        self._key_vault_url = normalize_vault_url(key_vault_url)
        self._expected_uami_client_id = _clean(expected_uami_client_id)
        self._tenant_id = _clean(tenant_id)
        self._use_managed_identity = use_managed_identity

    @classmethod
    def from_settings(cls, settings: Settings) -> RuntimeConfigState:
        """Seed from startup settings, dropping blanks and ``<...>`` placeholders."""
        return cls(
            key_vault_url=settings.key_vault_url if is_real(settings.key_vault_url) else None,
            expected_uami_client_id=(
                settings.expected_uami_client_id
                if is_real(settings.expected_uami_client_id)
                else None
            ),
            tenant_id=settings.tenant_id if is_real(settings.tenant_id) else None,
            use_managed_identity=not settings.use_default_credential,
        )

    def snapshot(self) -> ConfigSnapshot:
        with self._lock:
            return ConfigSnapshot(
                key_vault_url=self._key_vault_url,
                expected_uami_client_id=self._expected_uami_client_id,
                tenant_id=self._tenant_id,
                use_managed_identity=self._use_managed_identity,
            )

    def set_credential_mode(self, use_managed_identity: bool) -> None:
        with self._lock:
            self._use_managed_identity = use_managed_identity

    def apply(
        self,
        key_vault_url: str | None = None,
        expected_uami_client_id: str | None = None,
        tenant_id: str | None = None,
        use_managed_identity: bool | None = None,
    ) -> ConfigSnapshot:
        """Merge the given values in. Absent or blank inputs leave fields untouched.

        Returns the snapshot taken under the same lock as the update.
        """
        with self._lock:
            if not _blank(key_vault_url):
                self._key_vault_url = normalize_vault_url(key_vault_url)
            if not _blank(expected_uami_client_id):
                self._expected_uami_client_id = _clean(expected_uami_client_id)
            if not _blank(tenant_id):
                self._tenant_id = _clean(tenant_id)
            if use_managed_identity is not None:
                self._use_managed_identity = use_managed_identity
            return ConfigSnapshot(
                key_vault_url=self._key_vault_url,
                expected_uami_client_id=self._expected_uami_client_id,
                tenant_id=self._tenant_id,
                use_managed_identity=self._use_managed_identity,
            )
