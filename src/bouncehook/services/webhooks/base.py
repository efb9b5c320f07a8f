"""Common interface for bounce webhook adapters."""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from bouncehook.core.bounce import Bounce, apply_defaults
from bouncehook.core.errors import MalformedPayloadError
from bouncehook.services.validation import UUID_PATTERN
from bouncehook.utils.datetime import parse_timestamp
from bouncehook.utils.email import sanitize_email


class BounceAdapter(ABC):
    """Turns one raw webhook request into zero or more canonical bounces.

    Adapters always receive the body exactly as it arrived so that
    signatures can be checked over the original bytes.
    """

    source: str = ""

    def process(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        self.verify(raw, headers)
        return self.parse(raw, headers)

    @abstractmethod
    def verify(self, raw: bytes, headers: Mapping[str, str]) -> None:
        """Raise InvalidSignatureError unless the request is authentic."""

    @abstractmethod
    def parse(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        """Translate a verified body into canonical bounces."""

    def make_bounce(
        self,
        *,
        email: str,
        type: str,
        meta: Any,
        created_at: Any = None,
        campaign_uuid: Any = "",
        campaign_id: Any = None,
        subscriber_uuid: Any = "",
    ) -> Bounce:
        """Build a bounce with a sanitized email and default fields applied.

        A subscriber UUID that is present but malformed rejects the payload.
        """
        if not isinstance(email, str):
            raise MalformedPayloadError(f"{self.source}: email must be a string")
        try:
            normalized = sanitize_email(email)
        except ValueError as exc:
            raise MalformedPayloadError(f"{self.source}: {exc}") from exc

        if subscriber_uuid is not None and not isinstance(subscriber_uuid, str):
            raise MalformedPayloadError(f"{self.source}: invalid subscriber_uuid")
        subscriber_uuid = (subscriber_uuid or "").strip()
        if subscriber_uuid and not UUID_PATTERN.match(subscriber_uuid):
            raise MalformedPayloadError(f"{self.source}: invalid subscriber_uuid")

        try:
            bounce = Bounce(
                email=normalized,
                type=type,
                source=self.source,
                meta=meta,
                created_at=_timestamp(created_at),
                campaign_uuid=str(campaign_uuid or ""),
                campaign_id=campaign_id or None,
                subscriber_uuid=subscriber_uuid,
            )
        except (ValueError, OverflowError, OSError) as exc:
            raise MalformedPayloadError(f"{self.source}: {exc}") from exc
        return apply_defaults(bounce)


def _timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    return parse_timestamp(value)


def load_json(raw: bytes, source: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedPayloadError(f"{source}: invalid JSON body: {exc}") from exc


def load_json_object(raw: bytes, source: str) -> dict[str, Any]:
    payload = load_json(raw, source)
    if not isinstance(payload, dict):
        raise MalformedPayloadError(f"{source}: expected a JSON object")
    return payload


def header_value(headers: Mapping[str, Any] | list | None, name: str) -> str:
    """Case-insensitive header lookup over a mapping or a list of name/value pairs."""
    if not headers:
        return ""
    wanted = name.lower()
    if isinstance(headers, Mapping):
        items = headers.items()
    else:
        items = (
            (item.get("name"), item.get("value"))
            for item in headers
            if isinstance(item, Mapping)
        )
    for key, value in items:
        if isinstance(key, str) and key.lower() == wanted:
            if isinstance(value, list):
                value = value[0] if value else ""
            return str(value or "").strip()
    return ""
