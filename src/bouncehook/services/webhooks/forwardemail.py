"""Forward Email bounce webhook, signed with HMAC-SHA256 over the raw body."""
from __future__ import annotations

import hashlib
import hmac
from typing import Mapping

from bouncehook.core.bounce import CAMPAIGN_UUID_HEADER, SUBSCRIBER_UUID_HEADER, Bounce, BounceType
from bouncehook.core.config import Settings
from bouncehook.core.errors import InvalidSignatureError, MalformedPayloadError
from bouncehook.services.webhooks.base import BounceAdapter, header_value, load_json_object

SIGNATURE_HEADER = "X-Webhook-Signature"


class ForwardemailAdapter(BounceAdapter):
    source = "forwardemail"

    def __init__(self, settings: Settings) -> None:
        self.key = settings.bounce_forwardemail_key.encode()

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> None:
        signature = header_value(headers, SIGNATURE_HEADER)
        if not signature:
            raise InvalidSignatureError("forwardemail: missing signature")
        computed = hmac.new(self.key, raw, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(computed.encode(), signature.lower().encode()):
            raise InvalidSignatureError("forwardemail: signature verification failed")

    def parse(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        report = load_json_object(raw, self.source)
        if not report.get("recipient"):
            raise MalformedPayloadError("forwardemail: missing recipient")

        bounce = report.get("bounce")
        if not isinstance(bounce, dict):
            raise MalformedPayloadError("forwardemail: missing bounce details")
        typ = BounceType.SOFT if bounce.get("action") in ("defer", "delay") else BounceType.HARD

        mail_headers = report.get("headers")
        if not isinstance(mail_headers, dict):
            mail_headers = {}
        return [
            self.make_bounce(
                email=report["recipient"],
                type=typ.value,
                meta=report,
                created_at=report.get("bounced_at"),
                campaign_uuid=header_value(mail_headers, CAMPAIGN_UUID_HEADER),
                subscriber_uuid=header_value(mail_headers, SUBSCRIBER_UUID_HEADER),
            )
        ]
