"""Amazon SES bounce and complaint notifications delivered through SNS.

SNS speaks a small two-state protocol. Before any notification is sent the
endpoint receives a ``SubscriptionConfirmation`` that must be confirmed by
visiting its ``SubscribeURL``. After that, ``Notification`` messages carry
an SES report as a JSON string in ``Message``. Both kinds are signed with
an RSA certificate hosted on an SNS endpoint.
"""
from __future__ import annotations

import json
from typing import Any, Mapping

from cryptography import x509

from bouncehook.core.bounce import CAMPAIGN_UUID_HEADER, SUBSCRIBER_UUID_HEADER, Bounce, BounceType
from bouncehook.core.config import Settings
from bouncehook.core.errors import InvalidSignatureError, MalformedPayloadError
from bouncehook.services.webhooks.base import BounceAdapter, header_value, load_json_object
from bouncehook.utils import sns
from bouncehook.utils.logger import logger

MESSAGE_TYPE_HEADER = "X-Amz-Sns-Message-Type"

SUBSCRIPTION_CONFIRMATION = "SubscriptionConfirmation"
UNSUBSCRIBE_CONFIRMATION = "UnsubscribeConfirmation"
NOTIFICATION = "Notification"
MESSAGE_TYPES = (SUBSCRIPTION_CONFIRMATION, UNSUBSCRIBE_CONFIRMATION, NOTIFICATION)


class SESAdapter(BounceAdapter):
    source = "ses"

    def __init__(self, settings: Settings) -> None:
        self.verify_signatures = settings.sns_verify_signatures
        self.timeout_seconds = settings.sns_timeout_seconds
        self.allowed_topic_arns = frozenset(settings.sns_allowed_topic_arns)
        self._certs: dict[str, x509.Certificate] = {}

    def process(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        envelope = self._verified_envelope(raw, headers)
        message_type = envelope["Type"]

        if message_type == SUBSCRIPTION_CONFIRMATION:
            self._confirm_subscription(envelope)
            return []
        if message_type == UNSUBSCRIBE_CONFIRMATION:
            logger.info("SNS topic %s unsubscribed", envelope.get("TopicArn"))
            return []
        return self._parse_notification(envelope)

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> None:
        self._verified_envelope(raw, headers)

    def parse(self, raw: bytes, headers: Mapping[str, str]) -> list[Bounce]:
        envelope = load_json_object(raw, self.source)
        if envelope.get("Type") != NOTIFICATION:
            return []
        return self._parse_notification(envelope)

    def _verified_envelope(self, raw: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        message_type = header_value(headers, MESSAGE_TYPE_HEADER)
        if message_type not in MESSAGE_TYPES:
            raise MalformedPayloadError(f"ses: unsupported SNS message type {message_type!r}")

        envelope = load_json_object(raw, self.source)
        if envelope.get("Type") != message_type:
            raise MalformedPayloadError("ses: SNS message type does not match header")

        if self.allowed_topic_arns and envelope.get("TopicArn") not in self.allowed_topic_arns:
            raise InvalidSignatureError("ses: SNS topic is not allowed")

        if self.verify_signatures:
            ok, reason = sns.verify_sns_signature(envelope, self.timeout_seconds, cert_loader=self._load_cert)
            if not ok:
                raise InvalidSignatureError(f"ses: {reason}")
        return envelope

    def _load_cert(self, cert_url: str) -> x509.Certificate:
        cert = self._certs.get(cert_url)
        if cert is None:
            cert = sns.fetch_certificate(cert_url, self.timeout_seconds)
            self._certs[cert_url] = cert
        return cert

    def _confirm_subscription(self, envelope: dict[str, Any]) -> None:
        subscribe_url = envelope.get("SubscribeURL")
        if not subscribe_url:
            raise MalformedPayloadError("ses: missing SubscribeURL")
        if not sns.confirm_subscription(subscribe_url, self.timeout_seconds):
            raise MalformedPayloadError("ses: SNS subscription confirmation failed")
        logger.info("Confirmed SNS subscription for topic %s", envelope.get("TopicArn"))

    def _parse_notification(self, envelope: dict[str, Any]) -> list[Bounce]:
        body = envelope.get("Message")
        if not body or not isinstance(body, str):
            raise MalformedPayloadError("ses: missing SNS Message body")
        try:
            message = json.loads(body)
        except json.JSONDecodeError as exc:
            raise MalformedPayloadError("ses: invalid SNS Message JSON") from exc
        if not isinstance(message, dict):
            raise MalformedPayloadError("ses: SNS Message is not an object")

        notification_type = message.get("notificationType") or message.get("eventType")
        if notification_type == "Bounce":
            report = _object(message.get("bounce"))
            recipients_key = "bouncedRecipients"
            typ = BounceType.HARD if report.get("bounceType") == "Permanent" else BounceType.SOFT
        elif notification_type == "Complaint":
            report = _object(message.get("complaint"))
            recipients_key = "complainedRecipients"
            typ = BounceType.COMPLAINT
        else:
            logger.debug("Ignoring SES notification type %s", notification_type)
            return []

        mail = _object(message.get("mail"))
        emails = _recipient_emails(report.get(recipients_key))
        if not emails:
            emails = [e for e in (mail.get("destination") or []) if isinstance(e, str)]
        if not emails:
            raise MalformedPayloadError("ses: no recipients found in SES message")

        mail_headers = mail.get("headers")
        campaign_uuid = header_value(mail_headers, CAMPAIGN_UUID_HEADER)
        subscriber_uuid = header_value(mail_headers, SUBSCRIBER_UUID_HEADER)
        created_at = report.get("timestamp") or mail.get("timestamp")

        return [
            self.make_bounce(
                email=email,
                type=typ.value,
                meta=message,
                created_at=created_at,
                campaign_uuid=campaign_uuid,
                subscriber_uuid=subscriber_uuid if len(emails) == 1 else "",
            )
            for email in emails
        ]


def _object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _recipient_emails(recipients: Any) -> list[str]:
    if not recipients:
        return []
    if not isinstance(recipients, list):
        raise MalformedPayloadError("ses: recipients must be a list")
    emails = []
    for recipient in recipients:
        if not isinstance(recipient, dict) or not recipient.get("emailAddress"):
            raise MalformedPayloadError("ses: recipient without emailAddress")
        emails.append(recipient["emailAddress"])
    return emails
