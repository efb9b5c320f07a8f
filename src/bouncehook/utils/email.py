"""Email address sanitizer used before any address reaches storage."""
from __future__ import annotations

from email_validator import EmailNotValidError, validate_email


def sanitize_email(value: str) -> str:
    """Return the trimmed, lower-cased address or raise ValueError.

    Only bare addresses are accepted: ``"Name <a@b.c>"`` and ``"<a@b.c>"``
    are rejected. Syntax is checked with email-validator without any DNS
    lookups. Sanitizing twice gives the same result as sanitizing once.
    """
    if not isinstance(value, str):
        raise ValueError("invalid email: not a string")
    email = value.strip().lower()
    if not email:
        raise ValueError("invalid email: empty address")

    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"invalid email: {value}: {exc}") from exc
    return result.normalized.lower()
