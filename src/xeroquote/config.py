"""
xeroquote configuration management.

Supports loading from YAML files, a ``.env`` file, environment variables,
and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

from xeroquote.errors import ConfigError

# Env var -> config field
_ENV_FIELDS: dict[str, str] = {
    "XERO_CLIENT_ID": "client_id",
    "XERO_CLIENT_SECRET": "client_secret",
    "XERO_REDIRECT_URI": "redirect_uri",
    "XERO_TENANT_ID": "tenant_id",
    "XERO_CREDENTIALS_PATH": "credentials_path",
}


class XeroQuoteConfig(BaseModel):
    """Root configuration for xeroquote."""

    client_id: str | None = Field(default=None, description="Xero app client ID")
    client_secret: str | None = Field(default=None, description="Xero app client secret")
    redirect_uri: str = Field(
        default="http://localhost:3000/callback",
        description="OAuth redirect URI registered with the Xero app",
    )
    tenant_id: str | None = Field(
        default=None,
        description="Xero organisation ID (falls back to the one stored with the tokens)",
    )
    credentials_path: str = Field(default="credentials.json")
    default_account_code: str = Field(default="200", description="Sales account code")
    http_timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    strict_contact_lookup: bool = Field(
        default=False,
        description="Propagate contact search failures instead of treating them as 'not found'",
    )

    @property
    def callback_port(self) -> int:
        """Port the local callback server listens on, taken from the redirect URI."""
        parsed = urlparse(self.redirect_uri)
        if parsed.port is not None:
            return parsed.port
        return 443 if parsed.scheme == "https" else 80

    @property
    def callback_path(self) -> str:
        return urlparse(self.redirect_uri).path or "/callback"

    def require_client_credentials(self) -> None:
        """Fail fast when the Xero app credentials are missing."""
        missing = [
            name for name, value in (
                ("XERO_CLIENT_ID", self.client_id),
                ("XERO_CLIENT_SECRET", self.client_secret),
            ) if not value
        ]
        if missing:
            raise ConfigError(
                f"{' and '.join(missing)} must be set (in the environment or a .env file). "
                "Copy .env.example to .env and add your Xero app credentials."
            )

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> XeroQuoteConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables (.env never overrides the real env)
        load_dotenv(find_dotenv(usecwd=True), override=False)
        for env_name, field_name in _ENV_FIELDS.items():
            value = os.environ.get(env_name)
            if value:
                data[field_name] = value

        env_strict = os.environ.get("XERO_STRICT_CONTACT_LOOKUP")
        if env_strict:
            data["strict_contact_lookup"] = env_strict.lower() in ("1", "true", "yes")

        # 3. Apply keyword overrides
        data.update({k: v for k, v in overrides.items() if v is not None})

        return cls.model_validate(data)
