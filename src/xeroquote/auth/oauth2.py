"""
OAuth2 token lifecycle for Xero — refresh, persistence, and the one-time
interactive authorization.

Two pieces live here:

- :class:`TokenManager` loads the stored credentials on every run and
  refreshes the access token when it is within five minutes of expiry.
- :class:`AuthorizationFlow` and :class:`OAuthCallbackServer` complete the
  authorization-code exchange once, through a short-lived local listener,
  and write the initial credentials file.

Xero identity docs:
  https://developer.xero.com/documentation/guides/oauth2/auth-flow
"""

from __future__ import annotations

import logging
import secrets
import time
import webbrowser
from dataclasses import dataclass
from html import escape
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from xeroquote.auth.credentials import Credentials, CredentialStore
from xeroquote.config import XeroQuoteConfig
from xeroquote.errors import (
    AuthError,
    ConfigError,
    InvalidStateError,
    NotFoundError,
    XeroQuoteError,
)

logger = logging.getLogger("xeroquote.auth.oauth2")

XERO_TOKEN_URL = "https://identity.xero.com/connect/token"
XERO_AUTH_URL = "https://login.xero.com/identity/connect/authorize"
XERO_CONNECTIONS_URL = "https://api.xero.com/connections"

XERO_SCOPES = [
    "openid",
    "profile",
    "email",
    "accounting.transactions",
    "accounting.contacts",
    "offline_access",
]

_REAUTH_HINT = "Run `xeroquote auth` to re-authorize."


@dataclass(frozen=True)
class AccessContext:
    """The token pair a single API call is made with."""

    access_token: str
    tenant_id: str

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Xero-Tenant-Id": self.tenant_id,
            "Accept": "application/json",
        }


# ---------------------------------------------------------------------------
# Token lifecycle
# ---------------------------------------------------------------------------


class TokenManager:
    """Owns the current Xero token pair and keeps it fresh.

    Usage::

        manager = TokenManager(config, CredentialStore(config.credentials_path))
        await manager.initialize()          # loads, refreshes if needed
        ctx = manager.context()             # pass to every connector call
    """

    def __init__(
        self,
        config: XeroQuoteConfig,
        store: CredentialStore,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.tenant_id: str = config.tenant_id or ""
        self._credentials: Credentials | None = None
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    @property
    def is_expired(self) -> bool:
        return self._credentials is None or self._credentials.is_expired

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.config.http_timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def initialize(self) -> Credentials:
        """Load stored credentials and refresh them if they are about to expire.

        Raises:
            NotFoundError: If no credentials have been stored yet.
            AuthError: If a needed refresh fails.
        """
        self._credentials = self.store.load()

        if not self.tenant_id:
            self.tenant_id = self._credentials.tenant_id

        if self._credentials.is_expired:
            logger.info("Xero access token expired or expiring soon, refreshing")
            await self.refresh()
        else:
            logger.debug(
                "Xero access token valid for another %ds",
                int(self._credentials.seconds_remaining),
            )

        return self._credentials

    async def refresh(self) -> Credentials:
        """Exchange the stored refresh token for a new token pair.

        The new pair is persisted only after Xero has returned it; on any
        failure the stored credentials are left untouched.

        Raises:
            AuthError: If the refresh request fails for any reason.
        """
        if self._credentials is None:
            self._credentials = self.store.load()

        current = self._credentials
        if not current.refresh_token:
            raise AuthError(f"No refresh token stored in {self.store.path}. {_REAUTH_HINT}")

        client = await self._get_client()
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": current.refresh_token,
        }

        logger.debug("Refreshing Xero access token")
        try:
            resp = await client.post(
                XERO_TOKEN_URL,
                data=payload,
                auth=(self.config.client_id or "", self.config.client_secret or ""),
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise AuthError(
                f"Xero token refresh failed: HTTP {e.response.status_code}: "
                f"{e.response.text}. {_REAUTH_HINT}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise AuthError(f"Xero token refresh failed: {e}. {_REAUTH_HINT}") from e

        if not data.get("access_token") or not data.get("refresh_token"):
            raise AuthError(
                "Xero token refresh failed (missing access_token/refresh_token in response). "
                f"{_REAUTH_HINT}"
            )

        refreshed = Credentials.from_token_response(
            data, tenant_id=current.tenant_id or self.tenant_id,
        )
        self._credentials = refreshed
        self.store.save(refreshed)

        logger.info(
            "Refreshed Xero access token (expires in %ds)",
            int(refreshed.seconds_remaining),
        )
        return refreshed

    def context(self) -> AccessContext:
        """Return the token pair to hand to the next API call."""
        if self._credentials is None:
            raise InvalidStateError("Token manager is not initialized. Call initialize() first.")
        if not self.tenant_id:
            raise ConfigError(
                "No Xero tenant ID configured or stored. Set XERO_TENANT_ID or re-run `xeroquote auth`."
            )
        return AccessContext(access_token=self._credentials.access_token, tenant_id=self.tenant_id)


# ---------------------------------------------------------------------------
# Interactive authorization
# ---------------------------------------------------------------------------


@dataclass
class AuthorizationResult:
    """Outcome of a completed authorization-code exchange."""

    credentials: Credentials
    tenant_id: str
    tenant_name: str


class AuthorizationFlow:
    """Authorization-code exchange against Xero's identity service."""

    def __init__(
        self,
        config: XeroQuoteConfig,
        store: CredentialStore,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        config.require_client_credentials()
        self.config = config
        self.store = store
        self._http = http_client

    def consent_url(self, state: str = "") -> str:
        """Build the URL the user opens to grant access."""
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.config.client_id or "",
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(XERO_SCOPES),
        }
        if state:
            params["state"] = state
        return f"{XERO_AUTH_URL}?{urlencode(params)}"

    def complete(self, code: str) -> AuthorizationResult:
        """Exchange ``code`` for tokens, resolve the organisation, and save.

        Raises:
            AuthError: If the token exchange or tenant lookup fails.
            NotFoundError: If the user has no connected Xero organisation.
        """
        client = self._http or httpx.Client(timeout=self.config.http_timeout)
        try:
            token_resp = client.post(
                XERO_TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.config.redirect_uri,
                },
                auth=(self.config.client_id or "", self.config.client_secret or ""),
            )
            token_resp.raise_for_status()
            token_data = token_resp.json()

            conn_resp = client.get(
                XERO_CONNECTIONS_URL,
                headers={
                    "Authorization": f"Bearer {token_data['access_token']}",
                    "Accept": "application/json",
                },
            )
            conn_resp.raise_for_status()
            tenants = conn_resp.json()

            if not tenants:
                raise NotFoundError("No Xero organisations found for this login.")
            tenant_id = tenants[0]["tenantId"]
            tenant_name = tenants[0].get("tenantName") or "Unknown"
        except httpx.HTTPStatusError as e:
            raise AuthError(
                f"Xero authorization failed: HTTP {e.response.status_code}: {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise AuthError(f"Xero authorization failed: {e}") from e
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise AuthError(f"Xero authorization failed: unexpected response ({e!r})") from e
        finally:
            if self._http is None:
                client.close()

        credentials = Credentials.from_token_response(token_data, tenant_id=tenant_id)
        self.store.save(credentials)

        logger.info("Connected to Xero organisation %s (%s)", tenant_name, tenant_id)
        return AuthorizationResult(
            credentials=credentials, tenant_id=tenant_id, tenant_name=tenant_name,
        )


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; max-width: 600px; margin: 50px auto; padding: 20px;">
{body}
</body>
</html>
"""


class _OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the Xero OAuth2 callback."""

    server: OAuthCallbackServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self._send(404, "Not Found", content_type="text/plain")
            return

        params = parse_qs(parsed.query)

        if "error" in params:
            message = params.get("error_description", params["error"])[0]
            self._fail(400, AuthError(f"Authorization failed: {message}"))
            return

        code = params.get("code", [None])[0]
        if not code:
            self._fail(400, AuthError("No authorization code received"))
            return

        expected_state = self.server.expected_state
        if expected_state and params.get("state", [None])[0] != expected_state:
            self._fail(400, AuthError("State mismatch - possible CSRF attack"))
            return

        try:
            result = self.server.flow.complete(code)
        except XeroQuoteError as e:
            logger.error("Error during OAuth callback: %s", e)
            self._fail(500, e)
            return

        self.server.outcome = result
        body = (
            '<h1 style="color: #13B5EA;">&#10003; Authorization Successful</h1>\n'
            "<p>You've successfully connected to Xero organisation: "
            f"<strong>{escape(result.tenant_name)}</strong></p>\n"
            f"<p>Tenant ID: <code>{escape(result.tenant_id)}</code></p>\n"
            "<p>You can close this window and return to your terminal.</p>"
        )
        self._send(200, _PAGE_TEMPLATE.format(title="Xero Authorization Success", body=body))

    def _fail(self, status: int, error: Exception) -> None:
        self.server.outcome = error
        body = f"<h1>Error: {escape(str(error))}</h1>"
        self._send(status, _PAGE_TEMPLATE.format(title="Xero Authorization Error", body=body))

    def _send(self, status: int, content: str, *, content_type: str = "text/html") -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.end_headers()
        self.wfile.write(content.encode())

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("Callback server: " + format, *args)


class OAuthCallbackServer(HTTPServer):
    """Local listener that handles exactly one OAuth callback, then stops.

    Requests for any other path get a 404 and the server keeps waiting.
    """

    def __init__(
        self,
        flow: AuthorizationFlow,
        *,
        host: str = "localhost",
        port: int = 3000,
        callback_path: str = "/callback",
        expected_state: str | None = None,
    ) -> None:
        super().__init__((host, port), _OAuthCallbackHandler)
        self.flow = flow
        self.callback_path = callback_path
        self.expected_state = expected_state
        self.outcome: AuthorizationResult | Exception | None = None

    def serve_until_callback(self, timeout: float = 300) -> AuthorizationResult:
        """Handle requests until the callback arrives or ``timeout`` elapses.

        Raises:
            AuthError: On timeout, or whatever the callback failed with.
        """
        deadline = time.monotonic() + timeout
        try:
            while self.outcome is None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise AuthError(f"OAuth callback not received within {timeout}s")
                self.timeout = min(remaining, 1.0)
                self.handle_request()
        finally:
            self.server_close()
            logger.debug("OAuth callback server stopped")

        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def authorize_interactive(
    config: XeroQuoteConfig,
    *,
    store: CredentialStore | None = None,
    open_browser: bool = True,
    timeout: float = 300,
    on_consent_url: Callable[[str], None] | None = None,
) -> AuthorizationResult:
    """Run the full browser-based authorization and write the credentials file.

    Args:
        config: Loaded configuration (client ID/secret are required).
        store: Where to save credentials; defaults to ``config.credentials_path``.
        open_browser: Open the consent URL automatically.
        timeout: Seconds to wait for the user to finish in the browser.
        on_consent_url: Called with the consent URL before waiting.
    """
    store = store or CredentialStore(config.credentials_path)
    flow = AuthorizationFlow(config, store)

    state = secrets.token_urlsafe(32)
    server = OAuthCallbackServer(
        flow,
        port=config.callback_port,
        callback_path=config.callback_path,
        expected_state=state,
    )
    url = flow.consent_url(state)

    logger.info("Callback server listening on %s", config.redirect_uri)
    if on_consent_url:
        on_consent_url(url)
    if open_browser:
        webbrowser.open(url)

    return server.serve_until_callback(timeout=timeout)
