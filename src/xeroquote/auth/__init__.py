"""
xeroquote authentication and token management.

Provides the credential file store, automatic token refresh, and the
one-time interactive OAuth2 authorization for Xero.
"""

from xeroquote.auth.credentials import Credentials, CredentialStore
from xeroquote.auth.oauth2 import (
    AccessContext,
    AuthorizationFlow,
    AuthorizationResult,
    OAuthCallbackServer,
    TokenManager,
    authorize_interactive,
)

__all__ = [
    "AccessContext",
    "AuthorizationFlow",
    "AuthorizationResult",
    "CredentialStore",
    "Credentials",
    "OAuthCallbackServer",
    "TokenManager",
    "authorize_interactive",
]
