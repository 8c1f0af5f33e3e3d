"""Dependency injection — shared FastAPI dependencies.

Everything lives on ``app.state``, set once by ``create_app``.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from uami_demo.azure_provider import DiscoveryProvider
from uami_demo.config import Settings
from uami_demo.keyvault import KeyVaultService
from uami_demo.runtime_config import RuntimeConfigState


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_runtime_config(request: Request) -> RuntimeConfigState:
    return request.app.state.runtime_config


def get_keyvault_service(request: Request) -> KeyVaultService:
    return request.app.state.keyvault_service


def get_discovery_provider_factory(request: Request) -> Callable[[], DiscoveryProvider]:
    return request.app.state.discovery_provider_factory
