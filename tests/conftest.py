"""Shared fixtures."""

from __future__ import annotations

import json
import time
from pathlib import Path

import pytest

from xeroquote.config import XeroQuoteConfig


@pytest.fixture(autouse=True)
def _clean_xero_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real XERO_* settings on the test machine out of the tests.

    Setting before deleting makes monkeypatch remove anything a `.env` file
    loads during the test.
    """
    for name in (
        "XERO_CLIENT_ID",
        "XERO_CLIENT_SECRET",
        "XERO_REDIRECT_URI",
        "XERO_TENANT_ID",
        "XERO_CREDENTIALS_PATH",
        "XERO_STRICT_CONTACT_LOOKUP",
    ):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def credentials_path(tmp_path: Path) -> Path:
    return tmp_path / "credentials.json"


@pytest.fixture
def config(credentials_path: Path) -> XeroQuoteConfig:
    return XeroQuoteConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        credentials_path=str(credentials_path),
    )


def _write_credentials(path: Path, *, expires_at: float, tenant_id: str = "tenant-123") -> dict:
    data = {
        "tokenSet": {
            "access_token": "stored_access",
            "refresh_token": "stored_refresh",
            "expires_at": expires_at,
            "token_type": "Bearer",
        },
        "tenantId": tenant_id,
        "updatedAt": "2025-01-15T10:30:00+00:00",
    }
    path.write_text(json.dumps(data, indent=2))
    return data


@pytest.fixture
def valid_credentials(credentials_path: Path) -> dict:
    return _write_credentials(credentials_path, expires_at=time.time() + 3600)


@pytest.fixture
def write_credentials():
    """Factory: write a credentials file with the given expiry."""
    return _write_credentials
