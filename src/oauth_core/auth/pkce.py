"""
Proof Key for Code Exchange (RFC 7636).

Generates code verifiers and challenges and validates a presented verifier
against the challenge stored with an authorization code.
"""

import base64
import hashlib
import hmac
import secrets

from oauth_core.core.constants import (
    PKCE_METHOD_PLAIN,
    PKCE_METHOD_S256,
    PKCE_METHODS,
    PKCE_VERIFIER_CHARS,
    PKCE_VERIFIER_DEFAULT_LENGTH,
    PKCE_VERIFIER_MAX_LENGTH,
    PKCE_VERIFIER_MIN_LENGTH,
)

_VERIFIER_CHARSET = frozenset(PKCE_VERIFIER_CHARS)


class PkceValidator:
    """PKCE verifier/challenge generation and validation. Stateless."""

    def generate_verifier(self, length: int = PKCE_VERIFIER_DEFAULT_LENGTH) -> str:
        """
        Generate a random code verifier.

        Args:
            length: Verifier length, clamped to [43, 128]

        Returns:
            Verifier drawn from the unreserved URI characters
        """
        length = max(PKCE_VERIFIER_MIN_LENGTH, min(PKCE_VERIFIER_MAX_LENGTH, length))
        return "".join(secrets.choice(PKCE_VERIFIER_CHARS) for _ in range(length))

    def generate_challenge(self, verifier: str, method: str = PKCE_METHOD_S256) -> str:
        """
        Derive the code challenge for a verifier.

        Args:
            verifier: PKCE code verifier
            method: ``S256`` or ``plain``

        Returns:
            base64url(SHA-256(verifier)) without padding for S256, the verifier for plain

        Raises:
            ValueError: If the method is not supported
        """
        if method == PKCE_METHOD_S256:
            digest = hashlib.sha256(verifier.encode("ascii")).digest()
            return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
        if method == PKCE_METHOD_PLAIN:
            return verifier
        raise ValueError(f"Unsupported code challenge method: {method}")

    def validate_challenge(
        self,
        verifier: str,
        stored_challenge: str,
        method: str = PKCE_METHOD_S256,
    ) -> bool:
        """
        Check a presented verifier against a stored challenge.

        The comparison is constant-time over the encoded bytes.
        """
        if not self.is_valid_verifier(verifier):
            return False
        if not self.is_valid_challenge_method(method):
            return False

        computed = self.generate_challenge(verifier, method)
        return hmac.compare_digest(computed.encode("utf-8"), stored_challenge.encode("utf-8"))

    def is_valid_verifier(self, verifier: str | None) -> bool:
        if not verifier:
            return False
        if not PKCE_VERIFIER_MIN_LENGTH <= len(verifier) <= PKCE_VERIFIER_MAX_LENGTH:
            return False
        return all(ch in _VERIFIER_CHARSET for ch in verifier)

    def is_valid_challenge_method(self, method: str | None) -> bool:
        return method in PKCE_METHODS
