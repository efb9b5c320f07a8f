"""Bounce webhook ingestion and bounce record administration."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from bouncehook.core.bounce import BounceRecord
from bouncehook.core.errors import BounceError, BounceNotFoundError, MalformedPayloadError, UnknownServiceError
from bouncehook.services.bounce_store import BounceStore
from bouncehook.services.recorder import record_bounces
from bouncehook.services.validation import UUID_PATTERN
from bouncehook.services.webhooks import BounceAdapter
from bouncehook.utils.logger import logger

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])
router = APIRouter(prefix="/bounces", tags=["bounces"])

MAX_PER_PAGE = 1000


class WebhookResponse(BaseModel):
    status: str = "ok"
    received: int = 0


class BouncePage(BaseModel):
    results: list[BounceRecord]
    total: int
    page: int
    per_page: int


def get_adapters(request: Request) -> dict[str, BounceAdapter]:
    return request.app.state.bounce_adapters


def get_bounce_store(request: Request) -> BounceStore:
    return request.app.state.bounce_store


def _rejected(exc: BounceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.as_detail())


async def _process_webhook(
    request: Request,
    service: str,
    adapters: dict[str, BounceAdapter],
    store: BounceStore,
) -> WebhookResponse:
    adapter = adapters.get(service)
    if adapter is None:
        raise _rejected(UnknownServiceError())

    # Read the body once and keep it byte-exact for signature checks.
    raw = await request.body()

    try:
        bounces = await run_in_threadpool(adapter.process, raw, request.headers)
    except BounceError as exc:
        logger.warning("Rejected %s bounce webhook: %s", service or "native", exc.message)
        raise _rejected(exc) from exc
    except Exception as exc:
        logger.exception("Error processing %s bounce webhook", service or "native")
        raise _rejected(MalformedPayloadError("invalid data")) from exc

    # Storage failures are logged and counted but never fail the webhook.
    result = await run_in_threadpool(record_bounces, store, bounces)
    if result.failed:
        logger.warning(
            "Recorded %d of %d %s bounces, %d failed",
            result.recorded,
            len(bounces),
            service or "native",
            result.failed,
        )
    elif bounces:
        logger.info("Recorded %d %s bounces", result.recorded, service or "native")
    return WebhookResponse(received=len(bounces))


@webhook_router.post("/bounce", response_model=WebhookResponse)
async def handle_native_bounce(
    request: Request,
    adapters: dict[str, BounceAdapter] = Depends(get_adapters),
    store: BounceStore = Depends(get_bounce_store),
) -> WebhookResponse:
    """Receive a bounce posted in the native format."""

    return await _process_webhook(request, "", adapters, store)


@webhook_router.post("/bounce/{service}", response_model=WebhookResponse)
async def handle_bounce_webhook(
    request: Request,
    service: str,
    adapters: dict[str, BounceAdapter] = Depends(get_adapters),
    store: BounceStore = Depends(get_bounce_store),
) -> WebhookResponse:
    """Receive bounces from a provider webhook."""

    return await _process_webhook(request, service, adapters, store)


@router.get("/", response_model=BouncePage)
def list_bounces(
    campaign_id: int | None = Query(default=None),
    subscriber_uuid: str | None = Query(default=None),
    source: str | None = Query(default=None),
    order_by: str | None = Query(default=None),
    order: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=MAX_PER_PAGE),
    store: BounceStore = Depends(get_bounce_store),
) -> BouncePage:
    """List recorded bounces with optional filters."""

    results, total = store.query(
        campaign_id=campaign_id,
        subscriber_uuid=subscriber_uuid,
        source=source,
        order_by=order_by,
        order=order,
        offset=(page - 1) * per_page,
        limit=per_page,
    )
    return BouncePage(results=results, total=total, page=page, per_page=per_page)


@router.get("/subscriber/{subscriber_uuid}", response_model=list[BounceRecord])
def list_subscriber_bounces(
    subscriber_uuid: str,
    store: BounceStore = Depends(get_bounce_store),
) -> list[BounceRecord]:
    """List every bounce recorded for one subscriber, newest first."""

    if not UUID_PATTERN.match(subscriber_uuid):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid subscriber UUID")
    results, _ = store.query(subscriber_uuid=subscriber_uuid, limit=MAX_PER_PAGE)
    return results


@router.get("/{bounce_id}", response_model=BounceRecord)
def get_bounce(bounce_id: int, store: BounceStore = Depends(get_bounce_store)) -> BounceRecord:
    """Get a single bounce record."""

    try:
        return store.get_by_id(bounce_id)
    except BounceNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bounce not found")


@router.delete("/{bounce_id}")
def delete_bounce(bounce_id: int, store: BounceStore = Depends(get_bounce_store)) -> dict[str, int]:
    """Delete a single bounce record."""

    if bounce_id < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ID")
    return {"deleted": store.delete([bounce_id])}


@router.delete("/")
def delete_bounces(
    id: list[str] = Query(default=[]),
    all: bool = Query(default=False),
    store: BounceStore = Depends(get_bounce_store),
) -> dict[str, int]:
    """Delete bounces by ID (``?id=1&id=2``) or every bounce (``?all=true``)."""

    if all:
        return {"deleted": store.delete([], all=True)}

    try:
        ids = [int(value) for value in id]
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ID")
    if not ids or any(i < 1 for i in ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ID")
    return {"deleted": store.delete(ids)}
