"""
Outbox processor: the change-feed producer.

Reads PENDING outbox rows in id order and publishes each one to its
session channel in Redis. Rows move PENDING -> PROCESSING -> PUBLISHED,
or back to PENDING on failure until they hit the retry limit (FAILED).

Runs as a FastAPI background task started in the lifespan.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Awaitable, Callable

import redis.asyncio as redis
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from rest_api.models import OutboxEvent, OutboxStatus
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import (
    ChangeEvent,
    get_redis_pool,
    publish_change,
)

logger = get_logger(__name__)


class OutboxProcessor:
    """
    Polls the outbox and publishes change events.

    Batches are claimed with SELECT ... FOR UPDATE SKIP LOCKED so several
    workers can run side by side.
    """

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session] = SessionLocal,
        redis_getter: Callable[[], Awaitable[redis.Redis]] = get_redis_pool,
        batch_size: int | None = None,
        poll_interval: float | None = None,
        max_retries: int | None = None,
    ):
        self._session_factory = session_factory
        self._redis_getter = redis_getter
        self._batch_size = batch_size or settings.outbox_batch_size
        self._poll_interval = poll_interval if poll_interval is not None else settings.outbox_poll_interval
        self._max_retries = max_retries or settings.outbox_max_retries
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Outbox processor already running")
            return

        self.reclaim_stale()
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox processor started", batch_size=self._batch_size)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Outbox processor stopped")

    def reclaim_stale(self) -> int:
        """
        Return PROCESSING rows left by a worker that died mid-batch to PENDING.

        Called before the loop starts, while this process holds no claims.
        """
        db = self._session_factory()
        try:
            result = db.execute(
                update(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.PROCESSING)
                .values(status=OutboxStatus.PENDING)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if result.rowcount:
            logger.warning("Reclaimed stale outbox events", count=result.rowcount)
        return result.rowcount

    async def _run_loop(self) -> None:
        while self._running:
            try:
                processed = await self.process_batch()
            except Exception as e:
                logger.error("Outbox processor error", error=str(e), exc_info=True)
                processed = 0
            if processed == 0:
                await asyncio.sleep(self._poll_interval)

    async def process_batch(self) -> int:
        """
        Publish one batch of PENDING events.

        If the batch is interrupted after its rows were claimed (an error
        while settling it, or cancellation), the claimed rows that are still
        PROCESSING go back to PENDING.

        Returns:
            Number of events published.
        """
        db = self._session_factory()
        claimed: list[int] = []
        try:
            events = db.execute(
                select(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.PENDING)
                .order_by(OutboxEvent.id.asc())
                .limit(self._batch_size)
                .with_for_update(skip_locked=True)
            ).scalars().all()

            if not events:
                return 0

            claimed = [e.id for e in events]
            db.execute(
                update(OutboxEvent)
                .where(OutboxEvent.id.in_(claimed))
                .values(status=OutboxStatus.PROCESSING)
            )
            db.commit()

            published = 0
            for event in events:
                if await self._publish_event(event):
                    event.status = OutboxStatus.PUBLISHED
                    event.processed_at = datetime.now(timezone.utc)
                    event.last_error = None
                    published += 1
                    continue

                event.retry_count += 1
                if event.retry_count >= self._max_retries:
                    event.status = OutboxStatus.FAILED
                    logger.error(
                        "Outbox event failed after max retries",
                        event_id=event.id,
                        session_id=event.session_id,
                        feed_table=event.feed_table,
                    )
                else:
                    event.status = OutboxStatus.PENDING

            db.commit()
            claimed = []
            logger.debug("Outbox batch processed", total=len(events), published=published)
            return published
        except Exception:
            db.rollback()
            raise
        finally:
            try:
                if claimed:
                    self._release_claims(db, claimed)
            finally:
                db.close()

    def _release_claims(self, db: Session, event_ids: list[int]) -> None:
        db.rollback()
        db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id.in_(event_ids), OutboxEvent.status == OutboxStatus.PROCESSING)
            .values(status=OutboxStatus.PENDING)
        )
        db.commit()
        logger.warning("Outbox batch interrupted, events released", count=len(event_ids))

    async def _publish_event(self, event: OutboxEvent) -> bool:
        try:
            payload = json.loads(event.payload)
            change = ChangeEvent(
                event_type=event.event_type,
                table=event.feed_table,
                session_id=event.session_id,
                new=payload.get("new") or {},
                old=payload.get("old") or {},
                ts=event.created_at.isoformat() if event.created_at else None,
            )
            redis_client = await self._redis_getter()
            await publish_change(redis_client, change)
            return True
        except Exception as e:
            event.last_error = str(e)
            logger.warning(
                "Failed to publish outbox event",
                event_id=event.id,
                feed_table=event.feed_table,
                error=str(e),
            )
            return False


_processor: OutboxProcessor | None = None


def get_outbox_processor() -> OutboxProcessor:
    """Get the singleton outbox processor instance."""
    global _processor
    if _processor is None:
        _processor = OutboxProcessor()
    return _processor


async def start_outbox_processor() -> None:
    """Start the outbox processor (FastAPI lifespan startup)."""
    await get_outbox_processor().start()


async def stop_outbox_processor() -> None:
    """Stop the outbox processor (FastAPI lifespan shutdown)."""
    await get_outbox_processor().stop()
