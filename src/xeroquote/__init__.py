"""
xeroquote — turn structured sales-quote requests into Xero quotes.

Handles the Xero OAuth token lifecycle, contact lookup/creation, and
draft quote submission.
"""

__version__ = "0.1.0"
__all__ = [
    "XeroQuoteClient",
    "compute_totals",
    "normalize_quote",
    "parse_currency",
    "parse_quantity",
    "render_summary",
    "validate_quote",
]

from xeroquote.client import XeroQuoteClient  # noqa: E402
from xeroquote.quotes import (  # noqa: E402
    compute_totals,
    normalize_quote,
    parse_currency,
    parse_quantity,
    render_summary,
    validate_quote,
)
