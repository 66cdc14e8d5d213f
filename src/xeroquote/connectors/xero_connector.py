"""
Xero Connector — contacts and quotes via the Xero Accounting API.

Looks up and creates contacts, creates draft quotes, fetches quotes, and
marks them as sent. Every call takes an explicit :class:`AccessContext`
(access token + tenant) so the token lifecycle stays outside this module.

Xero API docs:
  https://developer.xero.com/documentation/api/accounting/quotes
  https://developer.xero.com/documentation/api/accounting/contacts
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

import httpx

from xeroquote.auth.oauth2 import XERO_CONNECTIONS_URL, AccessContext
from xeroquote.errors import (
    CreateError,
    InvalidStateError,
    NotFoundError,
    XeroAPIError,
)
from xeroquote.models.quote import (
    Contact,
    Quote,
    QuoteLineItem,
    QuoteRequest,
    QuoteResult,
    QuoteStatus,
)
from xeroquote.quotes.mapper import DEFAULT_ACCOUNT_CODE

logger = logging.getLogger("xeroquote.connectors.xero")

# Xero API endpoints
_XERO_API_URL = "https://api.xero.com/api.xro/2.0"
_XERO_QUOTE_WEB_URL = "https://go.xero.com/app/quotes/edit/{quote_id}"


def quote_url(quote_id: str) -> str:
    """Web URL for viewing/editing a quote in Xero."""
    return _XERO_QUOTE_WEB_URL.format(quote_id=quote_id)


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of a Xero error response."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text

    if not isinstance(data, dict):
        return resp.text

    messages = [
        err.get("Message", "")
        for element in data.get("Elements", [])
        for err in element.get("ValidationErrors", [])
    ]
    messages = [m for m in messages if m]
    if messages:
        return "; ".join(messages)
    return data.get("Message") or data.get("Detail") or resp.text


class XeroQuoteConnector:
    """Thin wrapper around the Xero endpoints needed to raise a quote.

    Usage::

        connector = XeroQuoteConnector()
        contact = await connector.find_contact(ctx, "Acme Ltd")
        result = await connector.create_quote(ctx, quote_request)
        await connector.close()
    """

    name = "xero"

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        strict_contact_lookup: bool = False,
        default_account_code: str = DEFAULT_ACCOUNT_CODE,
    ) -> None:
        self.timeout = timeout
        self.strict_contact_lookup = strict_contact_lookup
        self.default_account_code = default_account_code
        self._http = http_client
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
            self._owns_client = True
        return self._http

    async def close(self) -> None:
        """Clean up the HTTP client if this connector created it."""
        if self._owns_client and self._http and not self._http.is_closed:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # API helpers
    # ------------------------------------------------------------------

    async def _api_request(
        self,
        ctx: AccessContext,
        method: str,
        endpoint: str,
        *,
        action: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request to the Xero API.

        Raises:
            XeroAPIError: On transport errors or a non-2xx response, with
                ``action`` as the message prefix.
        """
        client = await self._get_client()
        url = f"{_XERO_API_URL}/{endpoint}"

        try:
            resp = await client.request(
                method,
                url,
                headers={**ctx.headers(), **(headers or {})},
                params=params,
                json=json,
            )
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise XeroAPIError(
                f"{action} failed: HTTP {status}: {_error_message(e.response)}",
                status_code=status,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise XeroAPIError(f"{action} failed: {e}") from e

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def find_contact(self, ctx: AccessContext, name: str) -> Contact | None:
        """Return the first contact whose name contains ``name``, or ``None``.

        Search failures are logged and reported as "not found" unless
        ``strict_contact_lookup`` is set.
        """
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        try:
            data = await self._api_request(
                ctx,
                "GET",
                "Contacts",
                action=f"Contact search for {name!r}",
                params={"where": f'Name.Contains("{escaped}")'},
            )
        except XeroAPIError as e:
            if self.strict_contact_lookup:
                raise
            logger.warning("Contact lookup failed, treating as not found: %s", e)
            return None

        contacts = data.get("Contacts") or []
        if not contacts:
            logger.debug("No Xero contact matching %r", name)
            return None

        contact = Contact.from_xero(contacts[0])
        logger.debug("Found Xero contact %s (%s)", contact.name, contact.contact_id)
        return contact

    async def create_contact(
        self, ctx: AccessContext, name: str, email: str | None = None,
    ) -> Contact:
        """Create a new contact.

        Raises:
            CreateError: If Xero returns no contact.
        """
        payload: dict[str, Any] = {"Name": name}
        if email:
            payload["EmailAddress"] = email

        data = await self._api_request(
            ctx,
            "PUT",
            "Contacts",
            action=f"Contact creation for {name!r}",
            json={"Contacts": [payload]},
        )

        contacts = data.get("Contacts") or []
        if not contacts:
            raise CreateError(f"Contact creation for {name!r} failed: Xero returned no contact")

        contact = Contact.from_xero(contacts[0])
        logger.info("Created Xero contact %s (%s)", contact.name, contact.contact_id)
        return contact

    async def find_or_create_contact(
        self, ctx: AccessContext, name: str, email: str | None = None,
    ) -> Contact:
        contact = await self.find_contact(ctx, name)
        if contact is not None:
            return contact
        return await self.create_contact(ctx, name, email)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def _line_item_payload(self, item: QuoteLineItem) -> dict[str, Any]:
        return {
            "Description": item.description,
            "Quantity": item.quantity,
            "UnitAmount": item.unit_amount,
            "AccountCode": item.account_code or self.default_account_code,
            "LineAmount": round(item.line_total, 2),
        }

    def build_quote_payload(self, request: QuoteRequest, contact_id: str) -> dict[str, Any]:
        """Map a normalized request onto Xero's quote shape."""
        quote: dict[str, Any] = {
            "Contact": {"ContactID": contact_id},
            "Date": request.date or date.today().isoformat(),
            "Status": QuoteStatus.DRAFT.value,
            "LineItems": [self._line_item_payload(li) for li in request.line_items],
        }
        if request.reference:
            quote["Reference"] = request.reference
        if request.terms:
            quote["Terms"] = request.terms
        return {"Quotes": [quote]}

    async def create_quote(self, ctx: AccessContext, request: QuoteRequest) -> QuoteResult:
        """Resolve the contact and create a draft quote.

        A fresh idempotency key is sent with every call; it is not kept, so
        calling this twice for the same request creates two quotes.

        Raises:
            InvalidStateError: If the resolved contact has no ID.
            CreateError: If Xero returns no quote.
            XeroAPIError: On any other API failure.
        """
        contact = await self.find_or_create_contact(ctx, request.contact_name, request.contact_email)
        if not contact.contact_id:
            raise InvalidStateError(f"Contact {contact.name!r} has no ContactID")

        payload = self.build_quote_payload(request, contact.contact_id)
        data = await self._api_request(
            ctx,
            "PUT",
            "Quotes",
            action=f"Quote creation for {request.contact_name!r}",
            json=payload,
            headers={"Idempotency-Key": str(uuid.uuid4())},
        )

        quotes = data.get("Quotes") or []
        if not quotes or not quotes[0].get("QuoteID"):
            raise CreateError(
                f"Quote creation for {request.contact_name!r} failed: Xero returned no quote"
            )

        quote_id = quotes[0]["QuoteID"]
        result = QuoteResult(
            quote_id=quote_id,
            quote_number=quotes[0].get("QuoteNumber"),
            url=quote_url(quote_id),
        )
        logger.info(
            "Created draft quote %s (%s) for %s",
            result.quote_number, result.quote_id, contact.name,
        )
        return result

    async def get_quote(self, ctx: AccessContext, quote_id: str) -> Quote | None:
        """Fetch a quote by ID; ``None`` if Xero does not know it."""
        try:
            data = await self._api_request(
                ctx, "GET", f"Quotes/{quote_id}", action=f"Quote fetch for {quote_id}",
            )
        except XeroAPIError as e:
            if e.status_code == 404:
                return None
            raise

        quotes = data.get("Quotes") or []
        if not quotes:
            return None
        return Quote.from_xero(quotes[0])

    async def mark_as_sent(self, ctx: AccessContext, quote_id: str) -> Quote:
        """Move a quote to SENT. No email is sent by Xero.

        Raises:
            NotFoundError: If the quote does not exist.
        """
        quote = await self.get_quote(ctx, quote_id)
        if quote is None:
            raise NotFoundError(f"Quote {quote_id} not found")

        # Xero requires Contact and Date on every quote update
        update: dict[str, Any] = {
            "QuoteID": quote.quote_id,
            "Status": QuoteStatus.SENT.value,
            "Contact": {"ContactID": quote.contact.contact_id if quote.contact else None},
            "Date": quote.date or date.today().isoformat(),
        }
        data = await self._api_request(
            ctx,
            "POST",
            f"Quotes/{quote_id}",
            action=f"Quote update for {quote_id}",
            json={"Quotes": [update]},
        )

        logger.info("Marked quote %s (%s) as sent", quote.quote_number, quote.quote_id)
        quotes = data.get("Quotes") or []
        if quotes and quotes[0].get("QuoteID"):
            return Quote.from_xero(quotes[0])
        return quote.model_copy(update={"status": QuoteStatus.SENT})

    # ------------------------------------------------------------------
    # Organisations
    # ------------------------------------------------------------------

    async def get_connections(self, access_token: str) -> list[dict[str, Any]]:
        """List the Xero organisations (tenants) this token can access."""
        client = await self._get_client()
        try:
            resp = await client.get(
                XERO_CONNECTIONS_URL,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise XeroAPIError(
                f"Listing Xero organisations failed: HTTP {e.response.status_code}: "
                f"{_error_message(e.response)}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise XeroAPIError(f"Listing Xero organisations failed: {e}") from e
