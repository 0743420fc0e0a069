"""
OAuth2 scopes (RFC 6749 Section 3.3).

The set of valid scopes is configured through ``OAUTH2_SCOPES``; the catalog
below only provides consent-screen labels for the scopes it knows about.
"""

from collections.abc import Iterable

# ========================================
# Consent Screen Labels
# ========================================

SCOPE_NAMES: dict[str, str] = {
    "read": "Read Access",
    "write": "Write Access",
    "photographs:read": "View Photographs",
    "photographs:write": "Upload Photographs",
    "rolls:read": "View Rolls",
    "rolls:write": "Manage Rolls",
    "profile": "View Profile",
    "admin": "Administrative Access",
}

SCOPE_DESCRIPTIONS: dict[str, str] = {
    "read": "Read access to your data",
    "write": "Write access to your data",
    "photographs:read": "View your photographs",
    "photographs:write": "Upload and modify your photographs",
    "rolls:read": "View your rolls and albums",
    "rolls:write": "Create and modify rolls and albums",
    "profile": "View your profile information (name, email)",
    "admin": "Administrative access to the platform",
}


def parse_scopes(scope: str | None) -> list[str]:
    """Split a space-delimited scope string, dropping empty entries and duplicates."""
    if not scope:
        return []
    return list(dict.fromkeys(scope.split()))


def format_scopes(scopes: Iterable[str]) -> str:
    return " ".join(scopes)


def validate_scopes(scopes: Iterable[str], valid_scopes: Iterable[str]) -> bool:
    """Check that every scope belongs to the server's valid-scope set."""
    valid = set(valid_scopes)
    return all(scope in valid for scope in scopes)


def is_subset(requested: Iterable[str], granted: Iterable[str]) -> bool:
    return set(requested) <= set(granted)


def describe_scope(scope: str) -> dict[str, str]:
    return {
        "scope": scope,
        "name": SCOPE_NAMES.get(scope, scope),
        "description": SCOPE_DESCRIPTIONS.get(scope, f"Access to {scope}"),
    }


def describe_scopes(scopes: Iterable[str]) -> list[dict[str, str]]:
    return [describe_scope(scope) for scope in scopes]
