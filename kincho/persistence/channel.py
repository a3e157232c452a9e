"""One-way channel carrying decision records to their sink.

The consensus engine publishes a DecisionRecord once a result is
computed and moves on. A background worker drains the queue into the
sink (usually ``DecisionStore.save_record``). Sink failures are logged
on the worker and never reach the publisher.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from kincho.persistence.database import close_db, init_db
from kincho.persistence.decisions import DecisionStore
from kincho.schemas.records import DecisionRecord, PersistenceConfig

logger = logging.getLogger(__name__)

# Sync or async callable receiving each published record
RecordSink = Callable[[DecisionRecord], Any]


class DecisionRecordChannel:
    """Bounded queue plus worker task between the engine and a sink.

    ``publish`` never blocks and never raises. Records published while
    the queue is full, after ``aclose``, or outside a running event loop
    are dropped with a warning.
    """

    def __init__(self, sink: RecordSink, maxsize: int = 100) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[DecisionRecord] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None
        self._closed = False
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def publish(self, record: DecisionRecord) -> bool:
        """Queue a record for the sink. Returns whether it was accepted."""
        if self._closed:
            return self._drop(record, "channel closed")
        try:
            self._ensure_worker()
        except RuntimeError:
            return self._drop(record, "no running event loop")
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            return self._drop(record, "queue full")
        return True

    async def drain(self) -> None:
        """Wait until every accepted record has been handled."""
        if self._worker is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        """Drain pending records and stop the worker."""
        self._closed = True
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

    async def __aenter__(self) -> DecisionRecordChannel:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _drop(self, record: DecisionRecord, reason: str) -> bool:
        self.dropped += 1
        logger.warning("Dropped decision record %s: %s", record.id, reason)
        return False

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                result = self._sink(record)
                if inspect.isawaitable(result):
                    await result
                self.delivered += 1
            except Exception as exc:
                self.failed += 1
                logger.warning("Failed to store decision record %s: %s", record.id, exc)
            finally:
                self._queue.task_done()


@contextlib.asynccontextmanager
async def open_decision_channel(
    config: PersistenceConfig,
) -> AsyncIterator[DecisionRecordChannel]:
    """Open the decision database and a channel feeding it.

    The channel is drained and the database closed on exit.
    """
    db = await init_db(config.db_path)
    try:
        store = DecisionStore(db)
        async with DecisionRecordChannel(
            store.save_record, maxsize=config.queue_size,
        ) as channel:
            yield channel
    finally:
        await close_db(db)
