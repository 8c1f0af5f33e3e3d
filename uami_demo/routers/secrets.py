"""Secret retrieval, health and read-only config routes."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from uami_demo.config import Settings
from uami_demo.deps import get_keyvault_service, get_runtime_config, get_settings
from uami_demo.keyvault import KeyVaultService
from uami_demo.models import SecretRequest, SecretResponse
from uami_demo.runtime_config import RuntimeConfigState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/secrets", tags=["secrets"])


def _bad_request(message: str) -> JSONResponse:
    body = SecretResponse(success=False, errorMessage=message)
    return JSONResponse(body.model_dump(), status_code=400)


@router.post("/retrieve")
async def retrieve_secret(
    request: Request,
    service: KeyVaultService = Depends(get_keyvault_service),
):
    """Retrieve one secret. Failures from the vault are 200s with success=false."""
    try:
        body = SecretRequest.model_validate(await request.json())
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        return _bad_request("Secret name is required")

    if not body.secretName or not body.secretName.strip():
        return _bad_request("Secret name is required")

    logger.info(
        "Attempting to retrieve secret '%s' with UAMI: %s, KeyVault: %s",
        body.secretName,
        body.managedIdentityId or "system-assigned",
        body.keyVaultUrl or "(from runtime config)",
    )
    result = await service.get_secret(body.secretName, body.managedIdentityId, body.keyVaultUrl)
    return result.model_dump()


@router.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.environment,
    }


@router.get("/config")
async def get_config(runtime_config: RuntimeConfigState = Depends(get_runtime_config)):
    """Live snapshot used by the front end to pre-populate fields."""
    return runtime_config.snapshot().to_dict()
