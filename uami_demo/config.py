"""
Centralized configuration for the UAMI demo service.

Values are layered: defaults, then an optional YAML settings file, then
environment variables. Nothing secret needs to live in the repository; the
settings file is expected to hold placeholders (``<your-vault-url>``) which
are ignored when the runtime state is seeded.

Usage:
    from uami_demo.config import get_settings
    settings = get_settings()
    print(settings.key_vault_url)   # "" or the configured vault
    print(settings.port)            # 8080 or $UAMI_DEMO_PORT
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "appsettings.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Startup settings. The live, mutable view is RuntimeConfigState."""

    # Azure
    key_vault_url: str = ""
    expected_uami_client_id: str = ""
    tenant_id: str = ""
    use_default_credential: bool = True
    enforce_identity_match: bool = False

    # Server
    environment: str = "Production"
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    logger.warning("Ignoring unrecognised boolean value %r", value)
    return default


def load_settings_file(path: Path) -> dict[str, Any]:
    """Flatten a YAML settings file into Settings keyword arguments.

    Expected layout::

        azure:
          keyVaultUrl: https://my-vault.vault.azure.net/
          expectedUamiClientId: <client-id>
          tenantId: <tenant-id>
          useDefaultCredential: true
        server:
          environment: Development
          port: 8080

    Returns an empty dict when the file is missing or malformed.
    """
    if not path.is_file():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.error("Settings file %s must contain a mapping", path)
        return {}

    azure = data.get("azure") or {}
    server = data.get("server") or {}
    values: dict[str, Any] = {}

    if "keyVaultUrl" in azure:
        values["key_vault_url"] = str(azure["keyVaultUrl"] or "")
    if "expectedUamiClientId" in azure:
        values["expected_uami_client_id"] = str(azure["expectedUamiClientId"] or "")
    if "tenantId" in azure:
        values["tenant_id"] = str(azure["tenantId"] or "")
    if "useDefaultCredential" in azure:
        values["use_default_credential"] = _parse_bool(azure["useDefaultCredential"], True)
    if "enforceIdentityMatch" in azure:
        values["enforce_identity_match"] = _parse_bool(azure["enforceIdentityMatch"], False)

    if "environment" in server:
        values["environment"] = str(server["environment"])
    if "host" in server:
        values["host"] = str(server["host"])
    if "port" in server:
        values["port"] = int(server["port"])
    if "logLevel" in server:
        values["log_level"] = str(server["logLevel"]).upper()
    return values


def _load_from_env(base: Settings) -> Settings:
    env = os.environ
    return Settings(
        key_vault_url=env.get("UAMI_DEMO_KEY_VAULT_URL", base.key_vault_url),
        expected_uami_client_id=env.get(
            "UAMI_DEMO_EXPECTED_UAMI_CLIENT_ID", base.expected_uami_client_id
        ),
        tenant_id=env.get("UAMI_DEMO_TENANT_ID", base.tenant_id),
        use_default_credential=_parse_bool(
            env.get("UAMI_DEMO_USE_DEFAULT_CREDENTIAL"), base.use_default_credential
        ),
        enforce_identity_match=_parse_bool(
            env.get("UAMI_DEMO_ENFORCE_IDENTITY_MATCH"), base.enforce_identity_match
        ),
        environment=env.get("UAMI_DEMO_ENVIRONMENT", base.environment),
        host=env.get("UAMI_DEMO_HOST", base.host),
        port=int(env.get("UAMI_DEMO_PORT", str(base.port))),
        log_level=env.get("UAMI_DEMO_LOG_LEVEL", base.log_level).upper(),
    )


def load_settings(settings_file: Path | None = None) -> Settings:
    """Build Settings from defaults, the settings file, then the environment."""
    if settings_file is None:
        settings_file = Path(os.environ.get("UAMI_DEMO_SETTINGS", DEFAULT_SETTINGS_FILE))
    base = replace(Settings(), **load_settings_file(settings_file))
    return _load_from_env(base)


# Singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings."""
    global _settings
    if _settings is not None:
        return _settings
    _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the singleton settings (for testing)."""
    global _settings
    _settings = None
