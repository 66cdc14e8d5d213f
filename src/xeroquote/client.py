"""
xeroquote — main entry point for embedding and automation.

The XeroQuoteClient ties the token lifecycle to the Xero connector so a
caller can go from a structured quote request to a draft quote in Xero in
one call.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx
from pydantic import BaseModel

from xeroquote.auth.credentials import Credentials, CredentialStore
from xeroquote.auth.oauth2 import TokenManager
from xeroquote.config import XeroQuoteConfig
from xeroquote.connectors.xero_connector import XeroQuoteConnector
from xeroquote.errors import NotFoundError, QuoteValidationError
from xeroquote.models.quote import Contact, Quote, QuoteRequest, QuoteResult
from xeroquote.quotes.mapper import normalize_quote
from xeroquote.quotes.validator import validate_quote

logger = logging.getLogger("xeroquote")


class XeroQuoteClient:
    """Top-level client for creating Xero quotes.

    Usage::

        from xeroquote import XeroQuoteClient

        async with XeroQuoteClient.from_config() as client:
            await client.initialize()
            result = await client.submit_quote({
                "contact_name": "Acme Ltd",
                "line_items": [{"description": "Consulting", "quantity": 5, "unit_amount": 150}],
            })
            print(result.url)

    Raises:
        ConfigError: At construction if the Xero client ID/secret are missing.
    """

    def __init__(
        self,
        config: XeroQuoteConfig,
        *,
        store: CredentialStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        config.require_client_credentials()
        self.config = config
        self.store = store or CredentialStore(config.credentials_path)

        self._http = http_client or httpx.AsyncClient(timeout=config.http_timeout)
        self._owns_client = http_client is None

        self.tokens = TokenManager(config, self.store, http_client=self._http)
        self.connector = XeroQuoteConnector(
            http_client=self._http,
            timeout=config.http_timeout,
            strict_contact_lookup=config.strict_contact_lookup,
            default_account_code=config.default_account_code,
        )

    @classmethod
    def from_config(cls, config_path: str | None = None, **overrides: Any) -> XeroQuoteClient:
        """Create a client from a config file, the environment, or keyword arguments."""
        return cls(XeroQuoteConfig.load(config_path, **overrides))

    async def __aenter__(self) -> XeroQuoteClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client and not self._http.is_closed:
            await self._http.aclose()

    async def initialize(self) -> Credentials:
        """Load the stored tokens, refresh if needed, and settle the tenant.

        Raises:
            NotFoundError: If no credentials are stored or no organisation
                is connected.
            AuthError: If a needed token refresh fails.
        """
        credentials = await self.tokens.initialize()

        if not self.tokens.tenant_id:
            connections = await self.connector.get_connections(credentials.access_token)
            if not connections:
                raise NotFoundError("No Xero organisations found. Run `xeroquote auth` again.")
            self.tokens.tenant_id = connections[0]["tenantId"]
            logger.info(
                "Auto-detected Xero tenant: %s (%s)",
                connections[0].get("tenantName", "Unknown"),
                self.tokens.tenant_id,
            )

        logger.info("xeroquote initialized for tenant %s", self.tokens.tenant_id)
        return credentials

    async def find_contact(self, name: str) -> Contact | None:
        return await self.connector.find_contact(self.tokens.context(), name)

    async def create_contact(self, name: str, email: str | None = None) -> Contact:
        return await self.connector.create_contact(self.tokens.context(), name, email)

    async def create_quote(self, request: QuoteRequest | Mapping[str, Any]) -> QuoteResult:
        """Create a draft quote from an already-validated request."""
        normalized = normalize_quote(
            request, default_account_code=self.config.default_account_code,
        )
        return await self.connector.create_quote(self.tokens.context(), normalized)

    async def submit_quote(self, request: Mapping[str, Any] | BaseModel) -> QuoteResult:
        """Validate, normalize, and create a quote in one step.

        Raises:
            QuoteValidationError: With every validation problem, before any
                API call is made.
        """
        validation = validate_quote(request)
        if not validation.valid:
            raise QuoteValidationError(validation.errors)
        return await self.create_quote(request)

    async def get_quote(self, quote_id: str) -> Quote | None:
        return await self.connector.get_quote(self.tokens.context(), quote_id)

    async def mark_quote_as_sent(self, quote_id: str) -> None:
        await self.connector.mark_as_sent(self.tokens.context(), quote_id)
