"""
Root-level shared test fixtures.

Inherited by every test module run from the repo root.
"""

from __future__ import annotations

import pytest

from uami_demo.config import reset_settings

_ENV_KEYS = [
    "UAMI_DEMO_SETTINGS",
    "UAMI_DEMO_KEY_VAULT_URL",
    "UAMI_DEMO_EXPECTED_UAMI_CLIENT_ID",
    "UAMI_DEMO_TENANT_ID",
    "UAMI_DEMO_USE_DEFAULT_CREDENTIAL",
    "UAMI_DEMO_ENFORCE_IDENTITY_MATCH",
    "UAMI_DEMO_ENVIRONMENT",
    "UAMI_DEMO_HOST",
    "UAMI_DEMO_PORT",
    "UAMI_DEMO_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove UAMI_DEMO_* env vars and run from an empty directory."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()
