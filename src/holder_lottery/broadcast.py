from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .fee_estimate import FeeEstimate
from .project_constants import STATUS_HOLDER_LIMIT
from .state import DrawStateMachine, DrawStatus

log = logging.getLogger(__name__)

Message = Dict[str, Any]


class Broadcaster:
    """
    Fans draw status changes and fee estimates out to subscribers.

    notify() only enqueues. Each subscriber owns a bounded queue; when a
    subscriber falls behind, its oldest message is dropped so the newest
    state always gets through. A new subscriber first receives the current
    status and the latest fee estimate.

    Queues belong to the event loop they were subscribed on. notify() may be
    called from any thread: delivery is handed to that loop when needed.
    """

    def __init__(
        self,
        queue_size: int = 16,
        holder_limit: int = STATUS_HOLDER_LIMIT,
        status_provider: Optional[Callable[[], DrawStatus]] = None,
    ) -> None:
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        self._queue_size = queue_size
        self._holder_limit = holder_limit
        self.status_provider = status_provider
        self._queues: Dict[asyncio.Queue, asyncio.AbstractEventLoop] = {}
        self._listeners: List[Callable[[Message], None]] = []
        self._last_fees: Optional[Message] = None

    @property
    def subscriber_count(self) -> int:
        return len(self._queues) + len(self._listeners)

    def track(self, state: DrawStateMachine) -> None:
        """Observe `state` and greet new subscribers with its current status."""
        self.status_provider = state.status
        state.add_observer(self.notify)

    def subscribe(self) -> asyncio.Queue:
        """Must be called from the event loop that will consume the queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        if self.status_provider is not None:
            self._deliver(queue, self.message(self.status_provider()))
        if self._last_fees is not None:
            self._deliver(queue, self._last_fees)
        self._queues[queue] = asyncio.get_running_loop()
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.pop(queue, None)

    def add_listener(self, callback: Callable[[Message], None]) -> None:
        self._listeners.append(callback)

    def message(self, status: DrawStatus) -> Message:
        return {"type": "drawStatusUpdate", "data": status.to_dict(self._holder_limit)}

    def notify(self, status: DrawStatus) -> None:
        self._fan_out(self.message(status))

    def notify_fees(self, estimate: FeeEstimate) -> None:
        message = {"type": "feesUpdate", "data": estimate.to_dict()}
        self._last_fees = message
        self._fan_out(message)

    def _fan_out(self, message: Message) -> None:
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        for queue, loop in list(self._queues.items()):
            if loop is current:
                self._deliver(queue, message)
            elif not loop.is_closed():
                loop.call_soon_threadsafe(self._deliver, queue, message)

        for callback in list(self._listeners):
            try:
                callback(message)
            except Exception:
                log.exception("Broadcast listener %r failed", callback)

    def _deliver(self, queue: asyncio.Queue, message: Message) -> None:
        if queue.full():
            queue.get_nowait()
            log.debug("Subscriber queue full; dropped oldest message")
        queue.put_nowait(message)

    async def stream(self) -> AsyncIterator[Message]:
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)
