"""OAuth2 authorization server components.

Clients, PKCE, authorization codes, opaque tokens, the orchestrator that
composes them into the RFC flows, and the authenticators guarding protected
endpoints.
"""

from .clients import ClientRegistry
from .codes import AuthorizationCodeIssuer
from .guards import (
    Authenticator,
    CompositeAuthenticator,
    JwtAuthenticator,
    OAuthTokenAuthenticator,
    Principal,
)
from .hashing import SecretHasher
from .oauth2_server import OAuthOrchestrator
from .pkce import PkceValidator
from .tokens import TokenIssuer

__all__ = [
    "AuthorizationCodeIssuer",
    "Authenticator",
    "ClientRegistry",
    "CompositeAuthenticator",
    "JwtAuthenticator",
    "OAuthOrchestrator",
    "OAuthTokenAuthenticator",
    "PkceValidator",
    "Principal",
    "SecretHasher",
    "TokenIssuer",
]
