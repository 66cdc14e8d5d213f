"""
Error taxonomy for xeroquote.

Validation problems are collected and returned in batches by the validator;
everything else is raised as one of the classes below, with the original
message preserved in the text.
"""

from __future__ import annotations


class XeroQuoteError(Exception):
    """Base class for all xeroquote errors."""


class ConfigError(XeroQuoteError):
    """Missing or invalid configuration (e.g. no client credentials)."""


class NotFoundError(XeroQuoteError):
    """Credential file or remote entity is absent."""


class AuthError(XeroQuoteError):
    """Token refresh or authorization failed; re-authorization is required."""


class FormatError(XeroQuoteError, ValueError):
    """Malformed currency, quantity, date or email input."""


class InvalidStateError(XeroQuoteError):
    """An operation was attempted with unusable state (e.g. contact without id)."""


class XeroAPIError(XeroQuoteError):
    """A Xero API call failed. The message carries the remote error text."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CreateError(XeroAPIError):
    """Xero accepted a create request but returned no usable entity."""


class CredentialsWriteError(XeroQuoteError, OSError):
    """The credential file could not be written."""


class QuoteValidationError(XeroQuoteError):
    """A quote request failed validation. ``errors`` holds every problem found."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Quote validation failed: " + "; ".join(errors))
        self.errors = list(errors)
