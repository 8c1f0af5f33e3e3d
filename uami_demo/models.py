"""Pydantic request/response models for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel

# ─── Config ──────────────────────────────────────────────────────────────


class SetCredentialModeRequest(BaseModel):
    useManagedIdentity: bool = False


class ApplyConfigRequest(BaseModel):
    keyVaultUrl: str | None = None
    expectedUamiClientId: str | None = None
    tenantId: str | None = None
    useManagedIdentity: bool | None = None


# ─── Secrets ─────────────────────────────────────────────────────────────


class SecretRequest(BaseModel):
    secretName: str | None = None
    managedIdentityId: str | None = None
    keyVaultUrl: str | None = None  # overrides the configured vault when set


class SecretResponse(BaseModel):
    success: bool
    secretValue: str | None = None
    errorMessage: str | None = None
    credentialMethod: str | None = None
    identityUsed: str | None = None
    codeSnippet: str | None = None
    requestInput: str | None = None
