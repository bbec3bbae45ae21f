"""
Writing change-feed events to the outbox.

Every mutation of a cart line, order or session records its row change in
the same transaction as the mutation itself:

    old = order.as_row()
    order.status = OrderStatus.READY
    record_update(db, FeedTable.ORDERS, order, old)
    safe_commit(db)  # order and event are saved together

The caller controls the transaction; nothing here commits.
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from rest_api.models import Base, OutboxEvent, OutboxStatus
from shared.config.constants import ChangeType, FeedTable
from shared.config.logging import get_logger

logger = get_logger(__name__)


def _session_id_of(feed_table: str, obj: Base) -> int:
    if feed_table == FeedTable.SESSIONS:
        return obj.id
    return obj.session_id


def write_outbox_event(
    db: Session,
    event_type: str,
    feed_table: str,
    session_id: int,
    row_id: int,
    new: dict[str, Any] | None = None,
    old: dict[str, Any] | None = None,
) -> OutboxEvent:
    """
    Queue one row change for publishing on `session:{session_id}:{feed_table}`.

    MUST be called within the same transaction as the business operation.
    """
    if feed_table not in FeedTable.ALL:
        raise ValueError(f"Table {feed_table!r} is not published on the change-feed")

    outbox_event = OutboxEvent(
        event_type=event_type,
        feed_table=feed_table,
        session_id=session_id,
        row_id=row_id,
        payload=json.dumps({"new": new or {}, "old": old or {}}, default=str),
        status=OutboxStatus.PENDING,
        retry_count=0,
    )
    db.add(outbox_event)
    logger.debug(
        "Change queued",
        event_type=event_type,
        feed_table=feed_table,
        session_id=session_id,
        row_id=row_id,
    )
    return outbox_event


def record_insert(db: Session, feed_table: str, obj: Base) -> OutboxEvent:
    """Record an INSERT. Flushes so the row has its id and defaults."""
    db.flush()
    db.refresh(obj)
    return write_outbox_event(
        db, ChangeType.INSERT, feed_table, _session_id_of(feed_table, obj), obj.id, new=obj.as_row()
    )


def record_update(db: Session, feed_table: str, obj: Base, old: dict[str, Any]) -> OutboxEvent:
    """Record an UPDATE given the row image captured before the change."""
    db.flush()
    return write_outbox_event(
        db,
        ChangeType.UPDATE,
        feed_table,
        _session_id_of(feed_table, obj),
        obj.id,
        new=obj.as_row(),
        old=old,
    )


def record_delete(db: Session, feed_table: str, obj: Base) -> OutboxEvent:
    """Record a DELETE. Call before db.delete(obj)."""
    return write_outbox_event(
        db, ChangeType.DELETE, feed_table, _session_id_of(feed_table, obj), obj.id, old=obj.as_row()
    )
