"""Connectors package — Xero API integration."""
from xeroquote.connectors.xero_connector import XeroQuoteConnector, quote_url

__all__ = [
    "XeroQuoteConnector",
    "quote_url",
]
