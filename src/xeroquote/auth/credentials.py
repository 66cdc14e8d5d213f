"""
Credential store — the single JSON file holding the Xero token set.

File layout::

    {
      "tokenSet": {"access_token": "...", "refresh_token": "...", "expires_at": 1730000000, ...},
      "tenantId": "...",
      "updatedAt": "2025-01-15T10:30:00+00:00"
    }

The file is the only durable local state. It is written by the interactive
authorization flow and overwritten in place after every token refresh.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from xeroquote.errors import CredentialsWriteError, NotFoundError

logger = logging.getLogger("xeroquote.auth.credentials")

# Refresh this many seconds before the access token actually expires
EXPIRY_MARGIN_SECONDS = 300

_TOKEN_SET_FIELDS = {"access_token", "refresh_token", "expires_at"}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Credentials:
    """Xero OAuth2 token pair plus the organisation it is bound to."""

    access_token: str
    refresh_token: str
    expires_at: float
    tenant_id: str = ""
    updated_at: str = field(default_factory=_utc_now_iso)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        """Check if the access token is expired (with 5-minute buffer)."""
        return time.time() >= (self.expires_at - EXPIRY_MARGIN_SECONDS)

    @property
    def seconds_remaining(self) -> float:
        return self.expires_at - time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenSet": {
                **self.extra,
                "access_token": self.access_token,
                "refresh_token": self.refresh_token,
                "expires_at": self.expires_at,
            },
            "tenantId": self.tenant_id,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credentials:
        token_set = data["tokenSet"]
        return cls(
            access_token=token_set["access_token"],
            refresh_token=token_set["refresh_token"],
            expires_at=float(token_set["expires_at"]),
            tenant_id=data.get("tenantId") or "",
            updated_at=data.get("updatedAt") or "",
            extra={k: v for k, v in token_set.items() if k not in _TOKEN_SET_FIELDS},
        )

    @classmethod
    def from_token_response(cls, data: dict[str, Any], tenant_id: str = "") -> Credentials:
        """Build credentials from a standard OAuth2 token endpoint response."""
        expires_in = int(data.get("expires_in", 1800))
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_at=int(time.time()) + expires_in,
            tenant_id=tenant_id,
            extra={k: v for k, v in data.items() if k not in {
                "access_token", "refresh_token", "expires_in", "expires_at",
            }},
        )


class CredentialStore:
    """Reads and writes :class:`Credentials` to a JSON file.

    No locking: one process, one invocation at a time.
    """

    def __init__(self, path: str | Path = "credentials.json") -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Credentials:
        """Load credentials from disk.

        Raises:
            NotFoundError: If the file is missing or cannot be parsed.
        """
        if not self.path.exists():
            raise NotFoundError(
                f"Credentials file not found: {self.path}. Run `xeroquote auth` first."
            )

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            credentials = Credentials.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise NotFoundError(
                f"Credentials file {self.path} is unreadable ({e}). Run `xeroquote auth` again."
            ) from e

        logger.debug("Loaded credentials from %s", self.path)
        return credentials

    def save(self, credentials: Credentials) -> None:
        """Overwrite the credential file with ``credentials``.

        Raises:
            CredentialsWriteError: If the file cannot be written.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(credentials.to_dict(), indent=2), encoding="utf-8")
            tmp_path.chmod(0o600)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise CredentialsWriteError(
                f"Failed to write credentials to {self.path}: {e}"
            ) from e

        logger.debug("Saved credentials to %s", self.path)
