"""Postmark bounce and spam complaint webhook.

Postmark does not sign webhook bodies. The webhook URL is configured with
HTTP basic auth credentials and those are checked instead. Each request
carries a single record.
"""
from __future__ import annotations

import base64
import binascii
import hmac
from typing import Mapping

from bouncehook.core.bounce import Bounce, BounceType
from bouncehook.core.config import Settings
from bouncehook.core.errors import InvalidSignatureError, MalformedPayloadError
from bouncehook.services.webhooks.base import BounceAdapter, header_value, load_json_object

HARD_TYPES = frozenset({"HardBounce", "BadEmailAddress", "ManuallyDeactivated"})
SOFT_TYPES = frozenset(
    {"SoftBounce", "Transient", "DnsError", "SpamNotification", "ChallengeVerification", "DMARCPolicy"}
)


class PostmarkAdapter(BounceAdapter):
    source = "postmark"

    def __init__(self, settings: Settings) -> None:
        self.username = settings.bounce_postmark_username
        self.password = settings.bounce_postmark_password

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> None:
        auth = header_value(headers, "Authorization")
        scheme, _, token = auth.partition(" ")
        if scheme.lower() != "basic" or not token:
            raise InvalidSignatureError("postmark: missing credentials")
        try:
            username, sep, password = base64.b64decode(token, validate=True).decode("utf-8").partition(":")
        except (binascii.Error, ValueError) as exc:
            raise InvalidSignatureError("postmark: invalid credentials") from exc

        user_ok = hmac.compare_digest(username.encode(), self.username.encode())
        pass_ok = hmac.compare_digest(password.encode(), self.password.encode())
        if not (sep and user_ok and pass_ok):
            raise InvalidSignatureError("postmark: invalid credentials")

    def parse(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        record = load_json_object(raw, self.source)

        record_type = record.get("RecordType")
        bounce_type = record.get("Type")
        if bounce_type is not None and not isinstance(bounce_type, str):
            raise MalformedPayloadError("postmark: Type must be a string")
        if record_type == "Bounce":
            if bounce_type in HARD_TYPES:
                typ = BounceType.HARD
            elif bounce_type in SOFT_TYPES:
                typ = BounceType.SOFT
            else:
                return []
        elif record_type == "SpamComplaint":
            typ = BounceType.COMPLAINT
        else:
            return []

        if not record.get("Email"):
            raise MalformedPayloadError("postmark: missing Email")

        metadata = record.get("Metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return [
            self.make_bounce(
                email=record["Email"],
                type=typ.value,
                meta=record,
                created_at=record.get("BouncedAt"),
                campaign_uuid=metadata.get("campaign_uuid"),
                campaign_id=metadata.get("campaign_id"),
                subscriber_uuid=metadata.get("subscriber_uuid"),
            )
        ]
