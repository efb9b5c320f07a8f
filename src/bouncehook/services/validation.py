"""Field validation for bounces posted in the native format."""
from __future__ import annotations

import re
from typing import Callable

from bouncehook.core.bounce import BOUNCE_TYPES, Bounce
from bouncehook.core.errors import InvalidFieldsError
from bouncehook.utils.email import sanitize_email

UUID_PATTERN = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def validate_bounce_fields(
    bounce: Bounce,
    sanitize: Callable[[str], str] = sanitize_email,
) -> Bounce:
    """Check identity, subscriber UUID, email and type, in that order.

    Returns a copy with the email normalized. Raises InvalidFieldsError on
    the first failing check.
    """
    if not bounce.email and not bounce.subscriber_uuid:
        raise InvalidFieldsError("missing identity: email / subscriber_uuid")

    if bounce.subscriber_uuid and not UUID_PATTERN.match(bounce.subscriber_uuid):
        raise InvalidFieldsError("invalid subscriber_uuid")

    if bounce.email:
        try:
            email = sanitize(bounce.email)
        except Exception as exc:
            # Sanitizer failures of any kind are reported as bad input.
            raise InvalidFieldsError(str(exc) or "invalid email") from exc
        if email != bounce.email:
            bounce = bounce.model_copy(update={"email": email})

    if bounce.type not in BOUNCE_TYPES:
        raise InvalidFieldsError("invalid type")

    return bounce
