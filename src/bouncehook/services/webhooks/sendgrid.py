"""SendGrid event webhook.

Requests are signed with ECDSA (P-256, SHA-256) over the timestamp header
followed by the raw body. One request carries a batch of events; a batch
with any malformed element is rejected as a whole so SendGrid retries it.
"""
from __future__ import annotations

import base64
import binascii
import time
from typing import Any, Callable, Mapping

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from bouncehook.core.bounce import Bounce, BounceType
from bouncehook.core.config import Settings
from bouncehook.core.errors import InvalidSignatureError, MalformedPayloadError
from bouncehook.services.webhooks.base import BounceAdapter, header_value, load_json

SIGNATURE_HEADER = "X-Twilio-Email-Event-Webhook-Signature"
TIMESTAMP_HEADER = "X-Twilio-Email-Event-Webhook-Timestamp"


def load_public_key(key: str) -> ec.EllipticCurvePublicKey:
    """Load the verification key as shown in the SendGrid console (base64 DER)."""
    try:
        public_key = serialization.load_der_public_key(base64.b64decode(key))
    except (binascii.Error, ValueError) as exc:
        raise ValueError("invalid SendGrid verification key") from exc
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise ValueError("SendGrid verification key is not an ECDSA key")
    return public_key


class SendgridAdapter(BounceAdapter):
    source = "sendgrid"

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time) -> None:
        self.public_key = load_public_key(settings.bounce_sendgrid_key)
        self.max_age_seconds = settings.bounce_sendgrid_max_age_seconds
        self.clock = clock

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> None:
        signature = header_value(headers, SIGNATURE_HEADER)
        timestamp = header_value(headers, TIMESTAMP_HEADER)
        if not signature or not timestamp:
            raise InvalidSignatureError("sendgrid: missing signature or timestamp")

        try:
            sent_at = int(timestamp)
        except ValueError as exc:
            raise InvalidSignatureError("sendgrid: invalid timestamp") from exc
        if self.max_age_seconds and abs(self.clock() - sent_at) > self.max_age_seconds:
            raise InvalidSignatureError("sendgrid: stale timestamp")

        try:
            der_signature = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidSignatureError("sendgrid: invalid signature encoding") from exc

        try:
            self.public_key.verify(der_signature, timestamp.encode() + raw, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature as exc:
            raise InvalidSignatureError("sendgrid: signature verification failed") from exc

    def parse(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        events = load_json(raw, self.source)
        if not isinstance(events, list):
            raise MalformedPayloadError("sendgrid: expected a JSON array of events")

        bounces: list[Bounce] = []
        for index, event in enumerate(events):
            if not isinstance(event, dict):
                raise MalformedPayloadError(f"sendgrid: event {index} is not an object")
            typ = _bounce_type(event)
            if typ is None:
                continue
            if not event.get("email"):
                raise MalformedPayloadError(f"sendgrid: event {index} has no email")
            bounces.append(
                self.make_bounce(
                    email=event["email"],
                    type=typ.value,
                    meta=event,
                    created_at=event.get("timestamp"),
                    campaign_uuid=event.get("campaign_uuid"),
                    campaign_id=event.get("campaign_id"),
                    subscriber_uuid=event.get("subscriber_uuid"),
                )
            )
        return bounces


def _bounce_type(event: dict[str, Any]) -> BounceType | None:
    name = event.get("event")
    if name == "bounce":
        # "blocked" bounces are temporary rejections by the receiving server.
        if event.get("type") == "blocked":
            return BounceType.SOFT
        return BounceType.HARD
    if name == "spamreport":
        return BounceType.COMPLAINT
    return None
