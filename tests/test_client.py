"""Tests for the top-level XeroQuoteClient."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from xeroquote import XeroQuoteClient
from xeroquote.config import XeroQuoteConfig
from xeroquote.errors import (
    ConfigError,
    InvalidStateError,
    NotFoundError,
    QuoteValidationError,
)


def _mock_http(routes: dict[tuple[str, str], Any]) -> AsyncMock:
    """An AsyncClient stand-in answering ``(method, url suffix)`` routes."""

    async def request(method: str, url: str, **kwargs: Any) -> httpx.Response:
        for (route_method, suffix), body in routes.items():
            if route_method == method and url.endswith(suffix):
                return httpx.Response(200, json=body, request=httpx.Request(method, url))
        return httpx.Response(404, json={}, request=httpx.Request(method, url))

    async def get(url: str, **kwargs: Any) -> httpx.Response:
        return await request("GET", url, **kwargs)

    client = AsyncMock()
    client.is_closed = False
    client.request.side_effect = request
    client.get.side_effect = get
    return client


ACME = {
    "contact_name": " Acme Ltd ",
    "line_items": [
        {"description": "Consulting", "quantity": 5, "unit_amount": 150},
        {"description": "Travel", "quantity": 2, "unit_amount": 75},
    ],
}


class TestXeroQuoteClient:
    def test_requires_client_credentials(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="XERO_CLIENT_ID"):
            XeroQuoteClient(XeroQuoteConfig(credentials_path=str(tmp_path / "c.json")))

    def test_from_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XERO_CLIENT_ID", "env_id")
        monkeypatch.setenv("XERO_CLIENT_SECRET", "env_secret")
        client = XeroQuoteClient.from_config(None, credentials_path=str(tmp_path / "c.json"))
        assert client.config.client_id == "env_id"
        assert client.connector.default_account_code == "200"

    @pytest.mark.asyncio
    async def test_initialize_without_credentials(self, config: XeroQuoteConfig) -> None:
        async with XeroQuoteClient(config, http_client=_mock_http({})) as client:
            with pytest.raises(NotFoundError, match="xeroquote auth"):
                await client.initialize()

    @pytest.mark.asyncio
    async def test_calls_before_initialize(self, config: XeroQuoteConfig) -> None:
        client = XeroQuoteClient(config, http_client=_mock_http({}))
        with pytest.raises(InvalidStateError):
            await client.get_quote("quote-001")

    @pytest.mark.asyncio
    async def test_initialize_auto_detects_tenant(
        self, config: XeroQuoteConfig, credentials_path: Path, write_credentials,
    ) -> None:
        write_credentials(credentials_path, expires_at=time.time() + 3600, tenant_id="")
        http = _mock_http({
            ("GET", "/connections"): [{"tenantId": "detected-tenant", "tenantName": "Demo Company"}],
        })

        client = XeroQuoteClient(config, http_client=http)
        await client.initialize()

        assert client.tokens.tenant_id == "detected-tenant"
        assert client.tokens.context().tenant_id == "detected-tenant"

    @pytest.mark.asyncio
    async def test_initialize_no_organisations(
        self, config: XeroQuoteConfig, credentials_path: Path, write_credentials,
    ) -> None:
        write_credentials(credentials_path, expires_at=time.time() + 3600, tenant_id="")
        client = XeroQuoteClient(config, http_client=_mock_http({("GET", "/connections"): []}))
        with pytest.raises(NotFoundError):
            await client.initialize()

    @pytest.mark.asyncio
    async def test_submit_quote_invalid_makes_no_calls(
        self, config: XeroQuoteConfig, valid_credentials: dict,
    ) -> None:
        http = _mock_http({})
        client = XeroQuoteClient(config, http_client=http)
        await client.initialize()

        with pytest.raises(QuoteValidationError) as exc_info:
            await client.submit_quote({"contact_name": "", "line_items": []})

        assert exc_info.value.errors == [
            "Contact name is required",
            "At least one line item is required",
        ]
        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_quote(self, config: XeroQuoteConfig, valid_credentials: dict) -> None:
        http = _mock_http({
            ("GET", "/Contacts"): {"Contacts": [{"ContactID": "contact-001", "Name": "Acme Ltd"}]},
            ("PUT", "/Quotes"): {"Quotes": [{"QuoteID": "quote-001", "QuoteNumber": "QU-0001"}]},
        })

        async with XeroQuoteClient(config, http_client=http) as client:
            await client.initialize()
            result = await client.submit_quote(ACME)

        assert result.quote_id == "quote-001"
        assert result.url.endswith("/quote-001")

        put_call = [c for c in http.request.call_args_list if c.args[0] == "PUT"][0]
        quote = put_call.kwargs["json"]["Quotes"][0]
        assert quote["Contact"] == {"ContactID": "contact-001"}
        assert [li["AccountCode"] for li in quote["LineItems"]] == ["200", "200"]
        assert put_call.kwargs["headers"]["Xero-Tenant-Id"] == "tenant-123"

        get_call = [c for c in http.request.call_args_list if c.args[0] == "GET"][0]
        assert get_call.kwargs["params"] == {"where": 'Name.Contains("Acme Ltd")'}

    @pytest.mark.asyncio
    async def test_uses_configured_account_code(
        self, config: XeroQuoteConfig, valid_credentials: dict,
    ) -> None:
        config.default_account_code = "4000"
        http = _mock_http({
            ("GET", "/Contacts"): {"Contacts": [{"ContactID": "contact-001", "Name": "Acme Ltd"}]},
            ("PUT", "/Quotes"): {"Quotes": [{"QuoteID": "quote-001"}]},
        })

        client = XeroQuoteClient(config, http_client=http)
        await client.initialize()
        await client.create_quote(ACME)

        put_call = [c for c in http.request.call_args_list if c.args[0] == "PUT"][0]
        assert {li["AccountCode"] for li in put_call.kwargs["json"]["Quotes"][0]["LineItems"]} == {"4000"}

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self, config: XeroQuoteConfig) -> None:
        http = _mock_http({})
        async with XeroQuoteClient(config, http_client=http):
            pass
        http.aclose.assert_not_called()
