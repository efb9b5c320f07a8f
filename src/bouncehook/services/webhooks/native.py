"""Bounces posted directly in the canonical format by internal callers."""
from __future__ import annotations

from typing import Mapping

from pydantic import ValidationError

from bouncehook.core.bounce import Bounce, apply_defaults
from bouncehook.core.errors import MalformedPayloadError
from bouncehook.services.validation import validate_bounce_fields
from bouncehook.services.webhooks.base import BounceAdapter


class NativeAdapter(BounceAdapter):
    source = ""

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> None:
        # Native posts sit behind the application's own access control.
        return None

    def parse(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        try:
            bounce = Bounce.model_validate_json(raw)
        except ValidationError as exc:
            raise MalformedPayloadError(f"invalid data: {_first_error(exc)}") from exc

        bounce = validate_bounce_fields(bounce)
        return [apply_defaults(bounce)]


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location:
        return f"{location}: {first.get('msg')}"
    return str(first.get("msg"))
