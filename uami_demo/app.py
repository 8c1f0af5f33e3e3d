"""
FastAPI application factory.

Start:
  uami-demo serve
  # or
  uvicorn uami_demo.app:create_app --factory --host 127.0.0.1 --port 8080
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from uami_demo import __version__
from uami_demo.azure_provider import AzureDiscoveryProvider, DiscoveryProvider
from uami_demo.config import Settings, get_settings
from uami_demo.keyvault import KeyVaultService
from uami_demo.middleware import CorrelationMiddleware
from uami_demo.routers.config import router as config_router
from uami_demo.routers.secrets import router as secrets_router
from uami_demo.runtime_config import RuntimeConfigState

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    runtime_config: RuntimeConfigState | None = None,
    keyvault_service: KeyVaultService | None = None,
    discovery_provider_factory: Callable[[], DiscoveryProvider] | None = None,
) -> FastAPI:
    """Build the app. Collaborators default to the real Azure-backed ones."""
    settings = settings or get_settings()
    runtime_config = runtime_config or RuntimeConfigState.from_settings(settings)

    app = FastAPI(title="UAMI Demo", version=__version__)
    app.state.settings = settings
    app.state.runtime_config = runtime_config
    app.state.keyvault_service = keyvault_service or KeyVaultService(
        runtime_config, enforce_identity_match=settings.enforce_identity_match
    )
    app.state.discovery_provider_factory = discovery_provider_factory or AzureDiscoveryProvider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationMiddleware)

    app.include_router(config_router)
    app.include_router(secrets_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse("/index.html")

    snapshot = runtime_config.snapshot()
    logger.info(
        "Runtime config seeded — vault: %s, mode: %s, configured: %s",
        snapshot.key_vault_url or "(not configured)",
        snapshot.credential_label,
        snapshot.is_configured,
    )
    if settings.enforce_identity_match:
        logger.warning("Identity match enforcement is ON")
    return app
