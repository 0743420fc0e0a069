"""OAuth2 authorization server core (RFC 6749, 7636, 7009, 7662)."""

__version__ = "0.1.0"
