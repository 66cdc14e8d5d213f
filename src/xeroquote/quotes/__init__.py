"""Quote validation and mapping — pure functions, no network access."""
from xeroquote.quotes.mapper import (
    DEFAULT_ACCOUNT_CODE,
    QuoteTotals,
    compute_totals,
    normalize_quote,
    parse_currency,
    parse_quantity,
    render_summary,
)
from xeroquote.quotes.validator import ValidationResult, validate_quote

__all__ = [
    "DEFAULT_ACCOUNT_CODE",
    "QuoteTotals",
    "ValidationResult",
    "compute_totals",
    "normalize_quote",
    "parse_currency",
    "parse_quantity",
    "render_summary",
    "validate_quote",
]
