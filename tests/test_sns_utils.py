"""Tests for SNS signature helpers."""
from __future__ import annotations

from conftest import CERT_URL, TOPIC_ARN, ses_bounce_message, ses_notification

from bouncehook.utils import sns as sns_utils


def test_cert_url_must_be_sns_host():
    assert sns_utils.is_allowed_cert_url(CERT_URL)[0] is True
    assert sns_utils.is_allowed_cert_url("https://sns.cn-north-1.amazonaws.com.cn/SimpleNotificationService-x.pem")[0]
    assert sns_utils.is_allowed_cert_url("http://sns.us-east-1.amazonaws.com/SimpleNotificationService-x.pem")[0] is False
    assert sns_utils.is_allowed_cert_url("https://sns.us-east-1.amazonaws.com.evil.com/SimpleNotificationService-x.pem")[0] is False
    assert sns_utils.is_allowed_cert_url("https://sns.us-east-1.amazonaws.com/other.pem")[0] is False


def test_string_to_sign_for_notification_skips_missing_subject():
    payload = {"Type": "Notification", "Message": "m", "MessageId": "id", "Timestamp": "t", "TopicArn": TOPIC_ARN}
    assert sns_utils.build_string_to_sign(payload) == (
        f"Message\nm\nMessageId\nid\nTimestamp\nt\nTopicArn\n{TOPIC_ARN}\nType\nNotification\n"
    )


def test_verify_sns_signature_happy(fetched_urls, sns_signer):
    envelope = sns_signer.sign(ses_notification(ses_bounce_message("a@example.com")))
    ok, reason = sns_utils.verify_sns_signature(envelope, 3)
    assert ok is True, reason
    assert fetched_urls == [CERT_URL]


def test_verify_sns_signature_fails_on_tampered_message(fetched_urls, sns_signer):
    envelope = sns_signer.sign(ses_notification(ses_bounce_message("a@example.com")))
    envelope["Message"] = envelope["Message"].replace("a@example.com", "b@example.com")
    ok, _ = sns_utils.verify_sns_signature(envelope, 3)
    assert ok is False


def test_verify_sns_signature_refuses_foreign_cert_url(fetched_urls, sns_signer):
    envelope = sns_signer.sign(ses_notification(ses_bounce_message("a@example.com")))
    envelope["SigningCertURL"] = "https://example.com/SimpleNotificationService-test.pem"
    ok, _ = sns_utils.verify_sns_signature(envelope, 3)
    assert ok is False
    assert fetched_urls == []


def test_verify_sns_signature_rejects_unknown_version(fetched_urls, sns_signer):
    envelope = sns_signer.sign(ses_notification(ses_bounce_message("a@example.com")))
    envelope["SignatureVersion"] = "3"
    ok, reason = sns_utils.verify_sns_signature(envelope, 3)
    assert ok is False
    assert reason == "Unsupported SignatureVersion"


def test_confirm_subscription_only_visits_sns(fetched_urls):
    assert sns_utils.confirm_subscription("https://example.com/confirm", 3) is False
    assert sns_utils.confirm_subscription("https://sns.us-east-1.amazonaws.com/?Action=ConfirmSubscription", 3)
    assert fetched_urls == ["https://sns.us-east-1.amazonaws.com/?Action=ConfirmSubscription"]
