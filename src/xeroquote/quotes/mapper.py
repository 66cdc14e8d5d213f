"""
Quote data mapping — normalization, totals, summaries, and input parsing.

Turns a validated quote request into the exact shape the Xero connector
submits, and parses the loose currency/quantity strings people type
("$1,500.00", "1/2").
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ValidationError

from xeroquote.errors import FormatError
from xeroquote.models.quote import QuoteLineItem, QuoteRequest
from xeroquote.quotes.validator import as_mapping, pick

logger = logging.getLogger("xeroquote.quotes.mapper")

DEFAULT_ACCOUNT_CODE = "200"  # Xero's default "Sales" account

# ISO codes accepted as a leading or trailing marker ("NZD 99.50", "99.50 EUR")
_CURRENCY_CODES = (
    "USD", "EUR", "GBP", "CAD", "AUD", "JPY", "CHF", "CNY", "INR", "MXN",
    "BRL", "KRW", "SGD", "HKD", "NZD", "SEK", "NOK", "DKK", "ZAR", "THB",
)
_CODES = "|".join(_CURRENCY_CODES)
# Symbols, a code at either end, and prefixed dollars ("A$", "NZ$")
_CURRENCY_MARKERS_RE = re.compile(
    rf"[$€£¥₹]|^(?:{_CODES})|(?:{_CODES})$|^[A-Z]{{1,2}}(?=\$)"
)
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


@dataclass
class QuoteTotals:
    """Pre-tax totals for a set of line items."""

    subtotal: float
    line_item_count: int
    total_quantity: float


def _clean(value: Any) -> str | None:
    """Trim a string; blank or missing becomes ``None``."""
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def normalize_quote(
    request: Mapping[str, Any] | BaseModel,
    *,
    default_account_code: str = DEFAULT_ACCOUNT_CODE,
    today: date | None = None,
) -> QuoteRequest:
    """Normalize a validated request into a :class:`QuoteRequest`.

    Trims every string, drops blank optionals, fills in the default account
    code and today's date. Normalizing an already-normalized request returns
    an equal request.

    Raises:
        FormatError: If the request cannot be coerced (it was not validated).
    """
    data = as_mapping(request)
    today = today or date.today()

    line_items: list[dict[str, Any]] = []
    for raw_item in pick(data, "line_items", "lineItems") or []:
        item = as_mapping(raw_item)
        line_items.append({
            "description": _clean(item.get("description")) or "",
            "quantity": item.get("quantity"),
            "unit_amount": pick(item, "unit_amount", "unitAmount"),
            "account_code": _clean(pick(item, "account_code", "accountCode")) or default_account_code,
        })

    try:
        normalized = QuoteRequest(
            contact_name=_clean(pick(data, "contact_name", "contactName")) or "",
            contact_email=_clean(pick(data, "contact_email", "contactEmail")),
            line_items=[QuoteLineItem(**li) for li in line_items],
            reference=_clean(data.get("reference")),
            terms=_clean(pick(data, "terms", "termsAndConditions", "terms_and_conditions")),
            date=_clean(data.get("date")) or today.isoformat(),
        )
    except ValidationError as e:
        raise FormatError(f"Quote request could not be normalized: {e}") from e

    logger.debug(
        "Normalized quote for %s with %d line items",
        normalized.contact_name, len(normalized.line_items),
    )
    return normalized


def compute_totals(items: Iterable[QuoteLineItem | Mapping[str, Any]]) -> QuoteTotals:
    """Sum line items. Tax is left to Xero's account-level tax rules."""
    subtotal = Decimal("0")
    total_quantity = Decimal("0")
    count = 0

    for raw_item in items:
        item = as_mapping(raw_item)
        quantity = Decimal(str(item.get("quantity", 0)))
        unit_amount = Decimal(str(pick(item, "unit_amount", "unitAmount") or 0))
        subtotal += quantity * unit_amount
        total_quantity += quantity
        count += 1

    return QuoteTotals(
        subtotal=float(subtotal),
        line_item_count=count,
        total_quantity=float(total_quantity),
    )


def _format_number(value: float) -> str:
    return format(Decimal(str(value)).normalize(), "f")


def _format_money(value: float, symbol: str) -> str:
    return f"{symbol}{value:,.2f}"


def render_summary(request: Mapping[str, Any] | BaseModel, *, currency_symbol: str = "$") -> str:
    """Render a deterministic, human-readable summary for confirmation."""
    data = as_mapping(request)
    lines: list[str] = []

    lines.append(f"Contact: {_clean(pick(data, 'contact_name', 'contactName')) or ''}")
    email = _clean(pick(data, "contact_email", "contactEmail"))
    if email:
        lines.append(f"Email: {email}")

    items = list(pick(data, "line_items", "lineItems") or [])
    lines.append("")
    lines.append("Line Items:")
    for index, raw_item in enumerate(items, 1):
        item = as_mapping(raw_item)
        quantity = float(item.get("quantity", 0))
        unit_amount = float(pick(item, "unit_amount", "unitAmount") or 0)
        lines.append(
            f"  {index}. {_clean(item.get('description')) or ''}: "
            f"{_format_number(quantity)} x {_format_money(unit_amount, currency_symbol)} = "
            f"{_format_money(quantity * unit_amount, currency_symbol)}"
        )

    totals = compute_totals(items)
    lines.append("")
    lines.append(f"Subtotal: {_format_money(totals.subtotal, currency_symbol)} (excl. tax)")

    reference = _clean(data.get("reference"))
    if reference:
        lines.append(f"Reference: {reference}")
    quote_date = _clean(data.get("date"))
    if quote_date:
        lines.append(f"Date: {quote_date}")
    terms = _clean(pick(data, "terms", "termsAndConditions", "terms_and_conditions"))
    if terms:
        lines.append(f"Terms: {terms}")

    return "\n".join(lines)


def parse_currency(raw: str | float | int) -> float:
    """Parse an amount like ``"$1,500.00"`` or ``"NZD 99.50"``.

    Raises:
        FormatError: If anything but a number is left after stripping.
    """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)

    text = _CURRENCY_MARKERS_RE.sub("", str(raw).strip().upper())
    text = text.replace(",", "").replace(" ", "")
    if not _DECIMAL_RE.fullmatch(text):
        raise FormatError(f"Invalid currency amount: {raw!r}")
    return float(Decimal(text))


def _parse_decimal(part: str, raw: Any) -> Decimal:
    part = part.strip()
    if not _DECIMAL_RE.fullmatch(part):
        raise FormatError(f"Invalid quantity: {raw!r}")
    try:
        return Decimal(part)
    except InvalidOperation as e:
        raise FormatError(f"Invalid quantity: {raw!r}") from e


def parse_quantity(raw: str | float | int) -> float:
    """Parse a quantity: a plain decimal or a simple fraction like ``"1/2"``.

    Raises:
        FormatError: On non-numeric parts, a zero denominator, or a
            result that is not positive.
    """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = Decimal(str(raw))
    else:
        text = str(raw).strip()
        if "/" in text:
            numerator, _, denominator = text.partition("/")
            num = _parse_decimal(numerator, raw)
            den = _parse_decimal(denominator, raw)
            if den == 0:
                raise FormatError(f"Invalid quantity (zero denominator): {raw!r}")
            value = num / den
        else:
            value = _parse_decimal(text, raw)

    if value <= 0:
        raise FormatError(f"Quantity must be positive: {raw!r}")
    return float(value)
