"""
Quote input validation.

Checks a caller-supplied quote request before anything is sent to Xero and
reports every problem at once, so the user can fix them in a single pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Mapping

from pydantic import BaseModel

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_quote`."""

    valid: bool
    errors: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def as_mapping(data: Mapping[str, Any] | BaseModel | None) -> Mapping[str, Any]:
    """Return ``data`` as a plain mapping (pydantic models are dumped)."""
    if data is None:
        return {}
    if isinstance(data, BaseModel):
        return data.model_dump()
    if isinstance(data, Mapping):
        return data
    return {}


def pick(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present value among ``keys`` (snake_case or camelCase)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_quote(request: Mapping[str, Any] | BaseModel) -> ValidationResult:
    """Validate a quote request.

    Checks, in order, without stopping at the first failure:

    1. contact name present and non-blank
    2. at least one line item
    3. per line item (1-based): description, quantity > 0, unit amount >= 0
    4. email shape, if given
    5. ``YYYY-MM-DD`` date shape, if given (not checked against the calendar)
    """
    data = as_mapping(request)
    errors: list[str] = []

    contact_name = pick(data, "contact_name", "contactName")
    if _is_blank(contact_name) or not isinstance(contact_name, str):
        errors.append("Contact name is required")

    line_items = pick(data, "line_items", "lineItems")
    if not isinstance(line_items, (list, tuple)) or not line_items:
        errors.append("At least one line item is required")
        line_items = []

    for index, raw_item in enumerate(line_items, 1):
        item = as_mapping(raw_item)

        description = item.get("description")
        if _is_blank(description) or not isinstance(description, str):
            errors.append(f"Line item {index}: Description is required")

        quantity = item.get("quantity")
        if not _is_number(quantity) or not quantity > 0:
            errors.append(f"Line item {index}: Quantity must be a positive number")

        unit_amount = pick(item, "unit_amount", "unitAmount")
        if not _is_number(unit_amount) or not unit_amount >= 0:
            errors.append(f"Line item {index}: Unit amount must be a non-negative number")

    email = pick(data, "contact_email", "contactEmail")
    if not _is_blank(email):
        if not isinstance(email, str) or not _EMAIL_RE.match(email.strip()):
            errors.append(f"Invalid email format: {email}")

    quote_date = data.get("date")
    if isinstance(quote_date, date):
        quote_date = quote_date.isoformat()
    if not _is_blank(quote_date):
        if not isinstance(quote_date, str) or not _DATE_RE.match(quote_date.strip()):
            errors.append(f"Invalid date format (expected YYYY-MM-DD): {quote_date}")

    return ValidationResult(valid=not errors, errors=errors)
