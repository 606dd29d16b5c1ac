"""In-process notification dispatcher backed by an asyncio queue."""

import asyncio
from typing import Optional

import structlog

from domain.entities.event import MembershipEvent
from domain.repositories.notification_dispatcher import INotificationSink

logger = structlog.get_logger()

NOTIFICATION_QUEUE_SIZE = 1000


class QueuedNotificationDispatcher:
    """Fire-and-forget implementation of INotificationDispatcher.

    ``emit`` only enqueues; a single background worker hands events to the
    sink one at a time. Delivery failures are logged and never reach the
    operation that produced the event.
    """

    def __init__(self, sink: INotificationSink, maxsize: int = NOTIFICATION_QUEUE_SIZE) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[MembershipEvent] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def emit(self, event: MembershipEvent) -> None:
        """Enqueue an event. A full queue drops it with a warning."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "notification_dropped",
                type=event.type,
                group_id=event.group_id,
                recipient_id=event.recipient_id,
                reason="queue_full",
            )

    def start(self) -> None:
        """Start the background worker on the running loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
            logger.info("notification_dispatcher_started")

    async def stop(self) -> None:
        """Deliver whatever is queued, then stop the worker."""
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("notification_dispatcher_stopped")

    async def drain(self) -> int:
        """Deliver every queued event on the caller's task. Returns the count."""
        delivered = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                if await self._deliver(event):
                    delivered += 1
            finally:
                self._queue.task_done()
        return delivered

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: MembershipEvent) -> bool:
        try:
            await self._sink.deliver(event)
        except Exception:
            logger.exception(
                "notification_delivery_failed",
                type=event.type,
                group_id=event.group_id,
                recipient_id=event.recipient_id,
            )
            return False
        logger.debug(
            "notification_delivered",
            type=event.type,
            group_id=event.group_id,
            recipient_id=event.recipient_id,
        )
        return True
