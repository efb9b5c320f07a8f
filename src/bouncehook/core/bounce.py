"""Canonical bounce model shared by every provider adapter."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bouncehook.utils.datetime import utcnow


class BounceType(str, Enum):
    HARD = "hard"
    SOFT = "soft"
    COMPLAINT = "complaint"


BOUNCE_TYPES = frozenset(t.value for t in BounceType)

# Mail headers carrying our own references back from the provider.
CAMPAIGN_UUID_HEADER = "X-Campaign-UUID"
SUBSCRIBER_UUID_HEADER = "X-Subscriber-UUID"


class Bounce(BaseModel):
    """A single delivery failure or complaint, normalized across providers.

    ``type`` is a plain string so that out-of-range values from native
    callers reach the field validator and get a precise rejection.
    """

    model_config = ConfigDict(frozen=True)

    subscriber_uuid: str = ""
    email: str = ""
    campaign_id: int | None = None
    campaign_uuid: str = ""
    type: str = ""
    source: str = ""
    meta: Any = Field(default_factory=dict)
    created_at: datetime | None = None

    @field_validator("subscriber_uuid", "email", "campaign_uuid", "type", "source", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("meta", mode="before")
    @classmethod
    def default_meta(cls, value: Any) -> Any:
        if value is None or value == "":
            return {}
        return value


class BounceRecord(Bounce):
    """A bounce as returned by the store, with its assigned ID."""

    id: int


def apply_defaults(bounce: Bounce) -> Bounce:
    """Fill ``meta`` and ``created_at`` when the producer left them out.

    A supplied, non-zero ``created_at`` is kept verbatim.
    """

    updates: dict[str, Any] = {}
    if bounce.meta is None or bounce.meta == "":
        updates["meta"] = {}
    if bounce.created_at is None or bounce.created_at.year <= 1:
        updates["created_at"] = utcnow()
    if not updates:
        return bounce
    return bounce.model_copy(update=updates)
