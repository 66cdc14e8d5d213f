"""
Quote data models — requests, line items, contacts, and remote quotes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class QuoteStatus(str, Enum):
    """Xero quote lifecycle statuses."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    DECLINED = "DECLINED"
    ACCEPTED = "ACCEPTED"
    INVOICED = "INVOICED"
    DELETED = "DELETED"


class QuoteLineItem(BaseModel):
    """A single line on a quote request."""

    model_config = ConfigDict(populate_by_name=True)

    description: str
    quantity: float
    unit_amount: float = Field(validation_alias=AliasChoices("unit_amount", "unitAmount"))
    account_code: str | None = Field(
        default=None, validation_alias=AliasChoices("account_code", "accountCode"),
    )

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_amount


class QuoteRequest(BaseModel):
    """A structured quote request, ready for submission once normalized."""

    model_config = ConfigDict(populate_by_name=True)

    contact_name: str = Field(validation_alias=AliasChoices("contact_name", "contactName"))
    contact_email: str | None = Field(
        default=None, validation_alias=AliasChoices("contact_email", "contactEmail"),
    )
    line_items: list[QuoteLineItem] = Field(
        default_factory=list, validation_alias=AliasChoices("line_items", "lineItems"),
    )
    reference: str | None = None
    terms: str | None = Field(
        default=None,
        validation_alias=AliasChoices("terms", "termsAndConditions", "terms_and_conditions"),
    )
    date: str | None = None


class Contact(BaseModel):
    """A Xero contact."""

    contact_id: str | None = None
    name: str
    email: str | None = None

    @classmethod
    def from_xero(cls, data: dict[str, Any]) -> Contact:
        return cls(
            contact_id=data.get("ContactID"),
            name=data.get("Name", ""),
            email=data.get("EmailAddress") or None,
        )


class Quote(BaseModel):
    """A quote as stored in Xero."""

    quote_id: str
    quote_number: str | None = None
    status: QuoteStatus = QuoteStatus.DRAFT
    contact: Contact | None = None
    line_items: list[QuoteLineItem] = Field(default_factory=list)
    date: str | None = None
    reference: str | None = None
    terms: str | None = None
    subtotal: float | None = None
    total: float | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_xero(cls, data: dict[str, Any]) -> Quote:
        contact = data.get("Contact")
        status = data.get("Status", QuoteStatus.DRAFT.value)
        try:
            status_enum = QuoteStatus(status)
        except ValueError:
            status_enum = QuoteStatus.DRAFT

        line_items = [
            QuoteLineItem(
                description=li.get("Description", ""),
                quantity=float(li.get("Quantity", 1)),
                unit_amount=float(li.get("UnitAmount", 0)),
                account_code=li.get("AccountCode"),
            )
            for li in data.get("LineItems", [])
        ]

        return cls(
            quote_id=data["QuoteID"],
            quote_number=data.get("QuoteNumber"),
            status=status_enum,
            contact=Contact.from_xero(contact) if contact else None,
            line_items=line_items,
            date=_date_only(data),
            reference=data.get("Reference"),
            terms=data.get("Terms"),
            subtotal=data.get("SubTotal"),
            total=data.get("Total"),
            raw_data=data,
        )


class QuoteResult(BaseModel):
    """Identifiers returned after a quote has been created."""

    quote_id: str
    quote_number: str | None = None
    url: str


def _date_only(data: dict[str, Any]) -> str | None:
    # Xero sends "Date" as "/Date(ms+0000)/" and "DateString" as ISO
    raw = data.get("DateString") or data.get("Date") or ""
    if not raw or raw.startswith("/Date("):
        return None
    return raw[:10]
