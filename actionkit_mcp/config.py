"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that reads from the
environment (or a local .env file). Every variable carries the PARAGON_
prefix, e.g. PARAGON_PROJECT_ID and PARAGON_SIGNING_KEY.

The signing key is usually pasted into a single-line environment variable
with literal "\\n" sequences; the token signer restores real newlines.
"""

from typing import Literal
from urllib.parse import quote

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsError

from actionkit_mcp.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Gateway configuration with environment variable bindings.

    Each field maps to an environment variable with the PARAGON_ prefix.
    For example, `project_id` reads from PARAGON_PROJECT_ID and
    `integrations` reads a JSON list from PARAGON_INTEGRATIONS.
    """

    # --- ActionKit settings ---

    # Paragon project that owns the integrations exposed as tools.
    project_id: str = ""

    # RSA private key (PEM) used to sign user assertions with RS256.
    # Required at startup; there is no usable default. May contain literal
    # "\n" sequences instead of newlines.
    signing_key: str | None = None

    api_base_url: str = "https://actionkit.useparagon.com"

    # Optional catalog filter, e.g. PARAGON_INTEGRATIONS='["slack"]'.
    # Empty means every integration enabled for the user.
    integrations: list[str] = []

    # Upper bound (seconds) on every outbound ActionKit request.
    http_timeout: float = 30.0

    # Link handed to the user by REDIRECT_TO_AUTHENTICATION_PAGE.
    # "{project_id}" and "{user}" are substituted.
    auth_portal_url: str = "https://connect.useparagon.com/{project_id}?user={user}"

    # What to do when two actions translate to the same tool name:
    # "skip" keeps the first one and logs the rest, "error" fails the fetch.
    duplicate_tool_policy: Literal["skip", "error"] = "skip"

    # Live session gates kept in memory; least recently used are evicted.
    max_sessions: int = 1024

    # --- Server settings ---

    transport: Literal["stdio", "streamable-http"] = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    model_config = {
        "env_prefix": "PARAGON_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    def check_startup(self) -> None:
        """
        Fail fast on configuration the gateway cannot serve without.

        Raises:
            ConfigurationError: If the signing key or project id is missing
        """
        if not self.signing_key or not self.signing_key.strip():
            raise ConfigurationError("PARAGON_SIGNING_KEY env variable needs to be set")
        if not self.project_id:
            raise ConfigurationError("PARAGON_PROJECT_ID env variable needs to be set")

    def portal_link(self, user: str) -> str:
        return self.auth_portal_url.format(project_id=self.project_id, user=quote(user, safe=""))


def load_settings() -> Settings:
    """
    Read settings from the environment once, at startup.

    Raises:
        ConfigurationError: If a variable cannot be parsed (e.g. a bare
                            PARAGON_INTEGRATIONS=slack instead of a JSON list)
    """
    try:
        return Settings()
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(f"Invalid PARAGON_* configuration: {e}")
