"""Provider adapters for the bounce webhook."""
from __future__ import annotations

from bouncehook.core.config import Settings
from bouncehook.services.webhooks.base import BounceAdapter
from bouncehook.services.webhooks.forwardemail import ForwardemailAdapter
from bouncehook.services.webhooks.native import NativeAdapter
from bouncehook.services.webhooks.postmark import PostmarkAdapter
from bouncehook.services.webhooks.sendgrid import SendgridAdapter
from bouncehook.services.webhooks.ses import SESAdapter

__all__ = [
    "BounceAdapter",
    "ForwardemailAdapter",
    "NativeAdapter",
    "PostmarkAdapter",
    "SESAdapter",
    "SendgridAdapter",
    "build_adapters",
]


def build_adapters(settings: Settings) -> dict[str, BounceAdapter]:
    """Map each enabled service path segment to its adapter.

    The empty segment is the native format and is always available. Disabled
    providers are left out so they look exactly like unknown ones.
    """

    adapters: dict[str, BounceAdapter] = {"": NativeAdapter()}
    if settings.bounce_ses_enabled:
        adapters["ses"] = SESAdapter(settings)
    if settings.bounce_sendgrid_enabled:
        adapters["sendgrid"] = SendgridAdapter(settings)
    if settings.bounce_postmark_enabled:
        adapters["postmark"] = PostmarkAdapter(settings)
    if settings.bounce_forwardemail_enabled:
        adapters["forwardemail"] = ForwardemailAdapter(settings)
    return adapters
