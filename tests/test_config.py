"""Tests for configuration loading and startup checks (actionkit_mcp/config.py)."""

import pytest

from actionkit_mcp.config import Settings, load_settings
from actionkit_mcp.errors import ConfigurationError


class TestSettings:
    def test_reads_paragon_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("PARAGON_PROJECT_ID", "proj-env")
        monkeypatch.setenv("PARAGON_INTEGRATIONS", '["slack", "gmail"]')
        monkeypatch.setenv("PARAGON_DUPLICATE_TOOL_POLICY", "error")

        loaded = Settings(_env_file=None)

        assert loaded.project_id == "proj-env"
        assert loaded.integrations == ["slack", "gmail"]
        assert loaded.duplicate_tool_policy == "error"
        assert loaded.transport == "stdio"

    def test_missing_signing_key_fails_startup(self):
        loaded = Settings(_env_file=None, project_id="proj", signing_key=None)

        with pytest.raises(ConfigurationError, match="PARAGON_SIGNING_KEY"):
            loaded.check_startup()

    def test_missing_project_id_fails_startup(self, rsa_private_pem):
        loaded = Settings(_env_file=None, project_id="", signing_key=rsa_private_pem)

        with pytest.raises(ConfigurationError, match="PARAGON_PROJECT_ID"):
            loaded.check_startup()

    def test_complete_configuration_passes(self, test_settings):
        test_settings.check_startup()

    def test_portal_link_escapes_the_user(self, test_settings):
        assert test_settings.portal_link("a+b@c.com") == (
            "https://connect.test/proj-123?user=a%2Bb%40c.com"
        )

    def test_load_settings_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PARAGON_PROJECT_ID", "proj-env")

        assert load_settings().project_id == "proj-env"

    def test_unparseable_environment_raises_configuration_error(self, monkeypatch):
        """A bare PARAGON_INTEGRATIONS=slack is not a JSON list."""
        monkeypatch.setenv("PARAGON_INTEGRATIONS", "slack")

        with pytest.raises(ConfigurationError, match="Invalid PARAGON_"):
            load_settings()
