"""Display name and email extraction from OIDC-style claims."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

DEFAULT_DISPLAY_NAME = "User"

_DISPLAY_NAME_CLAIMS = ("name", "display_name", "displayName")
_FALLBACK_NAME_CLAIMS = ("preferred_username", "email", "upn")
_EMAIL_CLAIMS = ("email", "emails", "mail", "preferred_username", "upn")


def string_claim(claims: Mapping[str, Any] | None, name: str) -> str | None:
    """Claim as a string; lists yield their first non-blank string."""
    if not claims:
        return None
    value = claims.get(name)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Iterable) and not isinstance(value, (bytes, Mapping)):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item
        return None
    return str(value)


def display_name(claims: Mapping[str, Any] | None) -> str:
    if not claims:
        return DEFAULT_DISPLAY_NAME

    for name in _DISPLAY_NAME_CLAIMS:
        value = string_claim(claims, name)
        if value and value.strip():
            return value.strip()

    given = string_claim(claims, "given_name")
    family = string_claim(claims, "family_name")
    if given or family:
        return " ".join(part.strip() for part in (given, family) if part).strip()

    for name in _FALLBACK_NAME_CLAIMS:
        value = string_claim(claims, name)
        if value and value.strip():
            return value.strip()

    return DEFAULT_DISPLAY_NAME


def email(claims: Mapping[str, Any] | None) -> str | None:
    if not claims:
        return None

    candidates = [string_claim(claims, name) for name in _EMAIL_CLAIMS]
    candidates.append(string_claim(claims, "verified_primary_email"))
    candidates.append(_email_from_identities(claims.get("identities")))

    for value in candidates:
        if _is_valid_email(value):
            return value.strip().lower()  # type: ignore[union-attr]
    return None


def _email_from_identities(identities: Any) -> str | None:
    # [{"signInType": "emailAddress", "issuerAssignedId": "a@b.com"}, ...]
    if not isinstance(identities, Iterable) or isinstance(identities, (str, bytes)):
        return None
    for identity in identities:
        if not isinstance(identity, Mapping):
            continue
        assigned = identity.get("issuerAssignedId")
        if identity.get("signInType") == "emailAddress" and assigned is not None:
            return str(assigned)
    return None


def _is_valid_email(value: str | None) -> bool:
    return bool(value and value.strip() and "@" in value and "." in value)
