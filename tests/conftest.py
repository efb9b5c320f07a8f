"""Shared fixtures: settings, in-memory stores and signing keys."""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bouncehook.api.app import create_app
from bouncehook.core.config import Settings
from bouncehook.db import models
from bouncehook.services.bounce_store import BounceStore
from bouncehook.utils import sns as sns_utils

TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:ses-bounces"
CERT_URL = "https://sns.us-east-1.amazonaws.com/SimpleNotificationService-test.pem"
FORWARDEMAIL_KEY = "forwardemail-secret"


class MemoryStore:
    """Bounce store double that can be told to fail on given emails."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.records = []
        self.attempts = []
        self.fail_for = fail_for or set()

    def record(self, bounce):
        self.attempts.append(bounce)
        if bounce.email in self.fail_for:
            raise RuntimeError("database is down")
        self.records.append(bounce)
        return bounce


class SendgridSigner:
    def __init__(self) -> None:
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        der = self.private_key.public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        self.public_key = base64.b64encode(der).decode()

    def headers(self, body: bytes, timestamp: int | None = None) -> dict[str, str]:
        ts = str(int(time.time()) if timestamp is None else timestamp)
        signature = self.private_key.sign(ts.encode() + body, ec.ECDSA(hashes.SHA256()))
        return {
            "X-Twilio-Email-Event-Webhook-Signature": base64.b64encode(signature).decode(),
            "X-Twilio-Email-Event-Webhook-Timestamp": ts,
        }


class SNSSigner:
    def __init__(self) -> None:
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "sns.amazonaws.com")])
        now = datetime.now(UTC)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=1))
            .sign(self.private_key, hashes.SHA256())
        )
        self.cert_pem = cert.public_bytes(serialization.Encoding.PEM)

    def sign(self, envelope: dict) -> dict:
        envelope = dict(envelope, SignatureVersion="2", SigningCertURL=CERT_URL)
        data = sns_utils.build_string_to_sign(envelope).encode()
        signature = self.private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        envelope["Signature"] = base64.b64encode(signature).decode()
        return envelope


@pytest.fixture(scope="session")
def sendgrid_signer() -> SendgridSigner:
    return SendgridSigner()


@pytest.fixture(scope="session")
def sns_signer() -> SNSSigner:
    return SNSSigner()


@pytest.fixture
def fetched_urls(monkeypatch, sns_signer):
    """Serve the test certificate and record every URL the SNS helpers fetch."""

    urls: list[str] = []

    def fake_fetch(url, timeout_seconds):  # noqa: ARG001
        urls.append(url)
        if url == CERT_URL:
            return sns_signer.cert_pem
        return b"<ConfirmSubscriptionResponse/>"

    monkeypatch.setattr(sns_utils, "_fetch_url", fake_fetch)
    return urls


@pytest.fixture
def settings(sendgrid_signer) -> Settings:
    return Settings(
        database_url="sqlite://",
        bounce_ses_enabled=True,
        sns_allowed_topic_arns=[TOPIC_ARN],
        bounce_sendgrid_enabled=True,
        bounce_sendgrid_key=sendgrid_signer.public_key,
        bounce_postmark_enabled=True,
        bounce_postmark_username="postmark",
        bounce_postmark_password="s3cret",
        bounce_forwardemail_enabled=True,
        bounce_forwardemail_key=FORWARDEMAIL_KEY,
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def client(settings, memory_store) -> TestClient:
    return TestClient(create_app(settings, store=memory_store))


@pytest.fixture
def bounce_store() -> BounceStore:
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    models.Base.metadata.create_all(bind=engine)
    return BounceStore(sessionmaker(bind=engine, expire_on_commit=False))


def forwardemail_signature(body: bytes, key: str = FORWARDEMAIL_KEY) -> str:
    return hmac.new(key.encode(), body, hashlib.sha256).hexdigest()


def ses_notification(message: dict) -> dict:
    return {
        "Type": "Notification",
        "MessageId": "sns-message-id",
        "TopicArn": TOPIC_ARN,
        "Message": json.dumps(message),
        "Timestamp": "2025-12-16T00:00:00.000Z",
    }


def ses_bounce_message(*emails: str, bounce_type: str = "Permanent") -> dict:
    return {
        "notificationType": "Bounce",
        "mail": {
            "messageId": "ses-message-id",
            "timestamp": "2025-12-16T00:00:00.000Z",
            "destination": list(emails),
            "headers": [
                {"name": "X-Campaign-UUID", "value": "0f0e7c1a-95a4-4bb5-8e1e-2e4a8d1f7a10"},
            ],
        },
        "bounce": {
            "bounceType": bounce_type,
            "timestamp": "2025-12-16T00:00:05.000Z",
            "bouncedRecipients": [{"emailAddress": email} for email in emails],
        },
    }
