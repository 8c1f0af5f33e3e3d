"""
Runtime configuration routes.

  GET  /api/config/current          — active in-memory config snapshot
  POST /api/config/credential-mode  — toggle DefaultAzureCredential ↔ ManagedIdentity
  POST /api/config/apply            — merge discovered values into the runtime config
  GET  /api/config/discover         — SSE stream: login → subscriptions, UAMIs, key vaults
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, Query
from starlette.responses import StreamingResponse

from uami_demo.azure_provider import DiscoveryProvider
from uami_demo.deps import get_discovery_provider_factory, get_runtime_config
from uami_demo.discovery import DiscoverySession
from uami_demo.models import ApplyConfigRequest, SetCredentialModeRequest
from uami_demo.runtime_config import RuntimeConfigState
from uami_demo.streaming import SSE_HEADERS, EventStream, sse_frames

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("/current")
async def get_current(runtime_config: RuntimeConfigState = Depends(get_runtime_config)):
    return runtime_config.snapshot().to_dict()


@router.post("/credential-mode")
async def set_credential_mode(
    body: SetCredentialModeRequest,
    runtime_config: RuntimeConfigState = Depends(get_runtime_config),
):
    runtime_config.set_credential_mode(body.useManagedIdentity)
    logger.info(
        "Credential mode changed to: %s",
        "ManagedIdentity" if body.useManagedIdentity else "DefaultAzureCredential",
    )
    return {"success": True, "useManagedIdentity": body.useManagedIdentity}


@router.post("/apply")
async def apply_config(
    body: ApplyConfigRequest,
    runtime_config: RuntimeConfigState = Depends(get_runtime_config),
):
    snapshot = runtime_config.apply(
        key_vault_url=body.keyVaultUrl,
        expected_uami_client_id=body.expectedUamiClientId,
        tenant_id=body.tenantId,
        use_managed_identity=body.useManagedIdentity,
    )
    logger.info(
        "Runtime config applied – KV: %s, UAMI: %s, ManagedIdentity: %s",
        body.keyVaultUrl,
        body.expectedUamiClientId,
        body.useManagedIdentity,
    )
    return {"success": True, "config": snapshot.to_dict()}


@router.get("/discover")
async def discover(
    tenant_id: str | None = Query(None, alias="tenantId"),
    provider_factory: Callable[[], DiscoveryProvider] = Depends(get_discovery_provider_factory),
) -> StreamingResponse:
    """Stream discovery events as SSE frames (``data: {json}``)."""
    stream = EventStream()
    session = DiscoverySession(provider_factory(), stream, tenant_id=tenant_id)
    producer = asyncio.create_task(session.run(), name="discovery")
    logger.info("Discovery started (tenant hint: %s)", tenant_id or "none")

    return StreamingResponse(
        sse_frames(stream, producer),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
