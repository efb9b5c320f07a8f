"""SNS helper utilities for signature verification and subscriptions."""
from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Callable
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from bouncehook.utils.logger import logger

_SNS_HOST = re.compile(r"^sns\.[a-z0-9\-]+\.amazonaws\.com(\.cn)?$")

NOTIFICATION_FIELDS = ("Message", "MessageId", "Subject", "Timestamp", "TopicArn", "Type")
SUBSCRIPTION_FIELDS = ("Message", "MessageId", "SubscribeURL", "Timestamp", "Token", "TopicArn", "Type")


def is_allowed_sns_url(url: str) -> tuple[bool, str]:
    """Validate that a URL points at an SNS regional endpoint over https."""
    parsed = urlparse(url or "")
    if parsed.scheme != "https":
        return False, "URL must use https"
    if not parsed.hostname:
        return False, "URL missing hostname"
    if parsed.hostname != "sns.amazonaws.com" and not _SNS_HOST.match(parsed.hostname):
        return False, "URL hostname is not allowed"
    return True, "ok"


def is_allowed_cert_url(cert_url: str) -> tuple[bool, str]:
    """Validate SNS SigningCertURL host and path."""
    allowed, reason = is_allowed_sns_url(cert_url)
    if not allowed:
        return False, f"SigningCertURL: {reason}"
    path = urlparse(cert_url).path
    if not path.startswith("/SimpleNotificationService-") or not path.endswith(".pem"):
        return False, "SigningCertURL path is not allowed"
    return True, "ok"


def build_string_to_sign(payload: dict[str, Any]) -> str:
    if payload.get("Type") == "Notification":
        fields = NOTIFICATION_FIELDS
    else:
        fields = SUBSCRIPTION_FIELDS

    parts: list[str] = []
    for field in fields:
        value = payload.get(field)
        if value is None:
            continue
        parts.append(field)
        parts.append(str(value))
    return "\n".join(parts) + "\n"


def _fetch_url(url: str, timeout_seconds: int) -> bytes:
    request = Request(url, method="GET")
    with urlopen(request, timeout=timeout_seconds) as response:
        return response.read()


def fetch_certificate(cert_url: str, timeout_seconds: int) -> x509.Certificate:
    return x509.load_pem_x509_certificate(_fetch_url(cert_url, timeout_seconds))


def verify_sns_signature(
    payload: dict[str, Any],
    timeout_seconds: int,
    cert_loader: Callable[[str], x509.Certificate] | None = None,
) -> tuple[bool, str]:
    """Verify SNS signature using the SigningCertURL.

    ``cert_loader`` maps a certificate URL to a parsed certificate; callers
    pass one to cache certificates. The default fetches on every call.
    """
    signature_b64 = payload.get("Signature")
    cert_url = payload.get("SigningCertURL")
    signature_version = str(payload.get("SignatureVersion"))
    if signature_version == "1":
        digest: hashes.HashAlgorithm = hashes.SHA1()
    elif signature_version == "2":
        digest = hashes.SHA256()
    else:
        return False, "Unsupported SignatureVersion"
    if not signature_b64 or not cert_url:
        return False, "Missing Signature or SigningCertURL"

    allowed, reason = is_allowed_cert_url(cert_url)
    if not allowed:
        return False, reason

    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError):
        return False, "Invalid Signature encoding"

    try:
        if cert_loader is not None:
            cert = cert_loader(cert_url)
        else:
            cert = fetch_certificate(cert_url, timeout_seconds)
    except OSError as exc:  # pragma: no cover - network errors
        logger.warning("Failed to fetch SNS cert: %s", exc)
        return False, "Failed to fetch SigningCertURL"
    except ValueError:
        return False, "Invalid signing certificate"

    public_key = cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False, "Unexpected signing key type"

    data_to_sign = build_string_to_sign(payload).encode("utf-8")
    try:
        public_key.verify(signature, data_to_sign, padding.PKCS1v15(), digest)
    except InvalidSignature:
        return False, "Signature verification failed"

    return True, "ok"


def confirm_subscription(subscribe_url: str, timeout_seconds: int) -> bool:
    allowed, reason = is_allowed_sns_url(subscribe_url)
    if not allowed:
        logger.warning("Refusing SNS SubscribeURL %s: %s", subscribe_url, reason)
        return False
    try:
        _fetch_url(subscribe_url, timeout_seconds)
        return True
    except OSError as exc:  # pragma: no cover - network errors
        logger.warning("Failed to confirm SNS subscription: %s", exc)
        return False
