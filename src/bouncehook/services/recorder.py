"""Hands normalized bounces to the store, one at a time."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from bouncehook.core.bounce import Bounce
from bouncehook.utils.logger import logger


class BounceSink(Protocol):
    def record(self, bounce: Bounce) -> object: ...


@dataclass
class RecordResult:
    recorded: int = 0
    failed: int = 0


def record_bounces(store: BounceSink, bounces: Iterable[Bounce]) -> RecordResult:
    """Record each bounce independently.

    A failure is logged and counted, and the remaining bounces are still
    attempted. Nothing is retried. The caller reports the totals.
    """

    result = RecordResult()
    for bounce in bounces:
        try:
            store.record(bounce)
        except Exception:
            logger.exception("Error recording bounce source=%s email=%s", bounce.source, bounce.email)
            result.failed += 1
        else:
            result.recorded += 1

    return result
