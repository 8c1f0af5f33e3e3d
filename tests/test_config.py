"""Tests for uami_demo.config — layered startup settings."""

from __future__ import annotations

import pytest

from uami_demo.config import Settings, get_settings, load_settings, load_settings_file, reset_settings

SETTINGS_YAML = """
azure:
  keyVaultUrl: https://file.vault.azure.net/
  expectedUamiClientId: file-cid
  tenantId: <tenant-id>
  useDefaultCredential: false
  enforceIdentityMatch: "yes"
server:
  environment: Development
  port: 9000
  logLevel: debug
"""


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.key_vault_url == ""
        assert s.use_default_credential is True
        assert s.enforce_identity_match is False
        assert s.environment == "Production"
        assert s.port == 8080

    def test_frozen(self):
        s = Settings()
        with pytest.raises(AttributeError):
            s.port = 1  # type: ignore[misc]


class TestSettingsFile:
    def test_missing_file(self, tmp_path):
        assert load_settings_file(tmp_path / "nope.yaml") == {}

    def test_parses_sections(self, tmp_path):
        path = tmp_path / "appsettings.yaml"
        path.write_text(SETTINGS_YAML)
        values = load_settings_file(path)
        assert values["key_vault_url"] == "https://file.vault.azure.net/"
        assert values["expected_uami_client_id"] == "file-cid"
        assert values["tenant_id"] == "<tenant-id>"
        assert values["use_default_credential"] is False
        assert values["enforce_identity_match"] is True
        assert values["environment"] == "Development"
        assert values["port"] == 9000
        assert values["log_level"] == "DEBUG"

    def test_malformed_yaml_ignored(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("azure: [unclosed")
        assert load_settings_file(path) == {}

    def test_non_mapping_ignored(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        assert load_settings_file(path) == {}


class TestLoadSettings:
    def test_env_overrides_file(self, clean_env, tmp_path, monkeypatch):
        path = tmp_path / "appsettings.yaml"
        path.write_text(SETTINGS_YAML)
        monkeypatch.setenv("UAMI_DEMO_KEY_VAULT_URL", "https://env.vault.azure.net/")
        monkeypatch.setenv("UAMI_DEMO_USE_DEFAULT_CREDENTIAL", "true")
        monkeypatch.setenv("UAMI_DEMO_PORT", "9100")

        s = load_settings(path)
        assert s.key_vault_url == "https://env.vault.azure.net/"
        assert s.expected_uami_client_id == "file-cid"
        assert s.use_default_credential is True
        assert s.port == 9100
        assert s.environment == "Development"

    def test_default_file_in_cwd(self, clean_env, tmp_path):
        (tmp_path / "appsettings.yaml").write_text(SETTINGS_YAML)
        s = load_settings()
        assert s.expected_uami_client_id == "file-cid"

    def test_settings_path_from_env(self, clean_env, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(SETTINGS_YAML)
        monkeypatch.setenv("UAMI_DEMO_SETTINGS", str(path))
        assert load_settings().port == 9000

    def test_unrecognised_bool_keeps_default(self, clean_env, monkeypatch):
        monkeypatch.setenv("UAMI_DEMO_ENFORCE_IDENTITY_MATCH", "maybe")
        assert load_settings().enforce_identity_match is False


class TestGetSettings:
    def test_singleton(self, clean_env):
        assert get_settings() is get_settings()

    def test_reset(self, clean_env, monkeypatch):
        first = get_settings()
        reset_settings()
        monkeypatch.setenv("UAMI_DEMO_ENVIRONMENT", "Staging")
        second = get_settings()
        assert first is not second
        assert second.environment == "Staging"
