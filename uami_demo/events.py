"""
Discovery event types — the closed set of frames sent over the SSE stream.

Plain frozen dataclasses, one per event kind. ``to_payload()`` produces the
camelCase JSON object the browser wizard consumes; its ``type`` field is one of
device-code | progress | subscriptions | identities | key-vaults | complete | error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar


@dataclass(frozen=True)
class SubscriptionInfo:
    id: str
    name: str | None = None
    tenant_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "tenantId": self.tenant_id}


@dataclass(frozen=True)
class IdentityInfo:
    name: str | None = None
    client_id: str | None = None
    principal_id: str | None = None
    resource_group: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "clientId": self.client_id,
            "principalId": self.principal_id,
            "resourceGroup": self.resource_group,
        }


@dataclass(frozen=True)
class KeyVaultInfo:
    name: str | None = None
    url: str | None = None
    resource_group: str | None = None
    location: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "resourceGroup": self.resource_group,
            "location": self.location,
        }


@dataclass(frozen=True)
class DeviceCode:
    code: str
    verification_url: str
    message: str
    expires_at: datetime | None = None

    type: ClassVar[str] = "device-code"

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "code": self.code,
            "verificationUrl": self.verification_url,
            "message": self.message,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class Progress:
    message: str

    type: ClassVar[str] = "progress"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


@dataclass(frozen=True)
class Subscriptions:
    data: list[SubscriptionInfo] = field(default_factory=list)

    type: ClassVar[str] = "subscriptions"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "data": [s.to_dict() for s in self.data]}


@dataclass(frozen=True)
class Identities:
    data: list[IdentityInfo] = field(default_factory=list)

    type: ClassVar[str] = "identities"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "data": [i.to_dict() for i in self.data]}


@dataclass(frozen=True)
class KeyVaults:
    data: list[KeyVaultInfo] = field(default_factory=list)

    type: ClassVar[str] = "key-vaults"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "data": [kv.to_dict() for kv in self.data]}


@dataclass(frozen=True)
class Complete:
    tenant_id: str | None = None
    subscription_id: str | None = None

    type: ClassVar[str] = "complete"

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "tenantId": self.tenant_id,
            "subscriptionId": self.subscription_id,
        }


@dataclass(frozen=True)
class Error:
    message: str

    type: ClassVar[str] = "error"

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


DiscoveryEvent = DeviceCode | Progress | Subscriptions | Identities | KeyVaults | Complete | Error
