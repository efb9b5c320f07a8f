"""SQLAlchemy-backed storage for recorded bounces."""
from __future__ import annotations

from sqlalchemy import asc, delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from bouncehook.core.bounce import Bounce, BounceRecord
from bouncehook.core.errors import BounceNotFoundError, StorageError
from bouncehook.db import models
from bouncehook.db.session import session_scope

SORT_FIELDS = {
    "id": models.Bounce.id,
    "email": models.Bounce.email,
    "source": models.Bounce.source,
    "type": models.Bounce.type,
    "campaign_id": models.Bounce.campaign_id,
    "created_at": models.Bounce.created_at,
}


def _to_record(row: models.Bounce) -> BounceRecord:
    return BounceRecord(
        id=row.id,
        subscriber_uuid=row.subscriber_uuid,
        email=row.email,
        campaign_id=row.campaign_id,
        campaign_uuid=row.campaign_uuid,
        type=row.type,
        source=row.source,
        meta=row.meta,
        created_at=row.created_at,
    )


class BounceStore:
    """Bounces are append-only: there is no update, only record and delete."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def record(self, bounce: Bounce) -> BounceRecord:
        row = models.Bounce(
            subscriber_uuid=bounce.subscriber_uuid,
            email=bounce.email,
            campaign_id=bounce.campaign_id or None,
            campaign_uuid=bounce.campaign_uuid,
            type=bounce.type,
            source=bounce.source,
            meta=bounce.meta if bounce.meta is not None else {},
            created_at=bounce.created_at,
        )
        try:
            with session_scope(self.session_factory) as session:
                session.add(row)
                session.flush()
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError("failed to record bounce") from exc

    def get_by_id(self, bounce_id: int) -> BounceRecord:
        try:
            with session_scope(self.session_factory) as session:
                row = session.get(models.Bounce, bounce_id)
                if row is None:
                    raise BounceNotFoundError(f"bounce {bounce_id} not found")
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError("failed to load bounce") from exc

    def query(
        self,
        *,
        campaign_id: int | None = None,
        subscriber_uuid: str | None = None,
        source: str | None = None,
        order_by: str | None = None,
        order: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[BounceRecord], int]:
        """Return one page of bounces and the total matching count."""

        stmt = select(models.Bounce)
        if campaign_id:
            stmt = stmt.where(models.Bounce.campaign_id == campaign_id)
        if subscriber_uuid:
            stmt = stmt.where(models.Bounce.subscriber_uuid == subscriber_uuid)
        if source:
            stmt = stmt.where(models.Bounce.source == source)

        column = SORT_FIELDS.get(order_by or "", models.Bounce.created_at)
        direction = asc if (order or "").lower() == "asc" else desc

        try:
            with session_scope(self.session_factory) as session:
                total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
                rows = session.scalars(
                    stmt.order_by(direction(column), direction(models.Bounce.id)).offset(offset).limit(limit)
                ).all()
                return [_to_record(row) for row in rows], total
        except SQLAlchemyError as exc:
            raise StorageError("failed to query bounces") from exc

    def delete(self, ids: list[int] | None = None, *, all: bool = False) -> int:
        """Delete the given bounces, or every bounce when ``all`` is set."""

        if not all and not ids:
            return 0
        stmt = delete(models.Bounce)
        if not all:
            stmt = stmt.where(models.Bounce.id.in_(ids))
        try:
            with session_scope(self.session_factory) as session:
                return session.execute(stmt).rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError("failed to delete bounces") from exc
