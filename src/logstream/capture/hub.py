"""Fan-out of captured log events to live stream subscribers."""

import asyncio
import logging
import threading
from collections import deque

from .models import LogRecord, PingRecord

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256

LogEventType = LogRecord | PingRecord

# Queued after the last event to tell a consumer the hub has shut down.
_END_OF_STREAM = object()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscription:
    """One subscriber's private, bounded delivery channel.

    Events are appended to a deque on the publishing thread, so the channel
    keeps the exact order in which ``publish`` was called no matter which
    thread called it. Only the consumer wakeup is handed to the subscriber's
    event loop with ``call_soon_threadsafe``. When the channel is full the
    new event is dropped for this subscriber only and counted in ``dropped``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int) -> None:
        self._loop = loop
        self._maxsize = maxsize
        self._buffer: deque[object] = deque()
        self._lock = threading.Lock()
        self._wakeup = asyncio.Event()
        self.dropped = 0
        self.closed = False

    def offer(
        self, event: LogEventType, current_loop: asyncio.AbstractEventLoop | None = None
    ) -> bool:
        """Hand ``event`` to this subscriber without blocking.

        Returns False when the subscriber's loop is gone and it should be
        dropped from the hub.
        """
        self._put(event)
        return self._wake(current_loop)

    def _put(self, item: object) -> None:
        with self._lock:
            if self.closed and item is not _END_OF_STREAM:
                return
            if len(self._buffer) < self._maxsize:
                self._buffer.append(item)
                return
            if item is _END_OF_STREAM:
                # Make room: the consumer must always learn the stream ended
                self._buffer.popleft()
                self._buffer.append(item)
                return
            self.dropped += 1
            first_drop = self.dropped == 1
        if first_drop:
            logger.warning("Stream subscriber is falling behind; dropping events")

    def _wake(self, current_loop: asyncio.AbstractEventLoop | None) -> bool:
        if current_loop is self._loop:
            self._wakeup.set()
            return True
        try:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError:
            return False
        return True

    def close(self, current_loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Stop accepting events and wake a consumer blocked in ``get``."""
        with self._lock:
            if self.closed:
                return
            self.closed = True
        self._put(_END_OF_STREAM)
        self._wake(current_loop)

    async def get(self) -> LogEventType | None:
        """Wait for the next event; None once the subscription has ended."""
        while True:
            with self._lock:
                if self._buffer:
                    item = self._buffer.popleft()
                    if item is _END_OF_STREAM:
                        return None
                    return item  # type: ignore[return-value]
                if self.closed:
                    return None
            self._wakeup.clear()
            await self._wakeup.wait()

    def pending(self) -> int:
        return len(self._buffer)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> LogEventType:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class BroadcastHub:
    """Simple pub/sub using one bounded channel per subscriber.

    The subscriber registry is an immutable tuple replaced on every
    subscribe/unsubscribe, so ``publish`` reads it without locking.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: tuple[Subscription, ...] = ()
        self._lock = threading.Lock()
        self._closed = False
        # Drops counted by subscribers that have since left
        self._retired_dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        """Register a new subscriber on the running event loop.

        Only events published after this call are delivered. On a closed hub
        the subscription is returned already ended.
        """
        loop = asyncio.get_running_loop()
        subscription = Subscription(loop, maxsize or self._queue_size)
        with self._lock:
            if self._closed:
                subscription.close(loop)
                return subscription
            self._subscribers = self._subscribers + (subscription,)
            count = len(self._subscribers)
        logger.info("Log stream subscribed (%d total)", count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber; unknown or already removed ones are ignored."""
        with self._lock:
            if subscription not in self._subscribers:
                return
            self._subscribers = tuple(s for s in self._subscribers if s is not subscription)
            count = len(self._subscribers)
            subscription.close(_running_loop())
            self._retired_dropped += subscription.dropped
        logger.info("Log stream unsubscribed (%d remaining)", count)

    def publish(self, event: LogEventType) -> int:
        """Offer ``event`` to every subscriber; returns how many accepted it."""
        subscribers = self._subscribers
        if not subscribers:
            return 0
        current_loop = _running_loop()
        delivered = 0
        dead: list[Subscription] = []
        for subscription in subscribers:
            if subscription.offer(event, current_loop):
                delivered += 1
            else:
                dead.append(subscription)
        for subscription in dead:
            self.unsubscribe(subscription)
        return delivered

    def total_dropped(self) -> int:
        """Events dropped for slow subscribers since the hub started."""
        with self._lock:
            return self._retired_dropped + sum(s.dropped for s in self._subscribers)

    def close(self) -> None:
        """End every subscription; later subscribers start out closed."""
        current_loop = _running_loop()
        with self._lock:
            self._closed = True
            subscribers, self._subscribers = self._subscribers, ()
            for subscription in subscribers:
                subscription.close(current_loop)
                self._retired_dropped += subscription.dropped
        if subscribers:
            logger.info("Log stream hub closed (%d subscribers ended)", len(subscribers))
