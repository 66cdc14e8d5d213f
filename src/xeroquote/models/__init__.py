"""Data models for quote requests, contacts, and Xero quotes."""
from xeroquote.models.quote import (
    Contact,
    Quote,
    QuoteLineItem,
    QuoteRequest,
    QuoteResult,
    QuoteStatus,
)

__all__ = [
    "Contact",
    "Quote",
    "QuoteLineItem",
    "QuoteRequest",
    "QuoteResult",
    "QuoteStatus",
]
