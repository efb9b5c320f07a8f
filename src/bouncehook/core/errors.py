"""Error types raised while ingesting bounces.

Everything deriving from :class:`BounceError` is a rejected input: the
caller sent something we will not accept, and the route layer answers with a
client error carrying ``code`` and the message. Storage problems use their
own hierarchy because they are never reported back to webhook callers.
"""
from __future__ import annotations


class BounceError(Exception):
    """Base class for rejected webhook input."""

    code = "invalid_data"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_detail(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class UnknownServiceError(BounceError):
    code = "unknown_service"

    def __init__(self, message: str = "unknown bounce service") -> None:
        super().__init__(message)


class InvalidSignatureError(BounceError):
    code = "invalid_signature"


class MalformedPayloadError(BounceError):
    code = "invalid_data"


class InvalidFieldsError(BounceError):
    code = "invalid_fields"


class StorageError(Exception):
    """The bounce store failed to persist or load records."""


class BounceNotFoundError(StorageError):
    pass
