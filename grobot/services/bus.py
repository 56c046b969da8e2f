from __future__ import annotations
import asyncio
import logging
from typing import Dict, List, Optional

from ..domain.errors import BusClosed
from ..domain.models import Message

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One consumer's view of the bus: a bounded FIFO of messages.

    When the queue is full the oldest message is dropped to make room, so a
    slow consumer only ever loses stale state, never the newest message.
    The close marker has a slot of its own and never evicts a message.
    """

    def __init__(self, bus: "ControlBus", name: str, capacity: int) -> None:
        self._bus = bus
        self.name = name
        self._capacity = capacity
        # one extra slot for the close marker
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity + 1)
        self.dropped = 0

    def __len__(self) -> int:
        return self._queue.qsize()

    def _put(self, item: object) -> None:
        if self._queue.qsize() >= self._capacity:
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Subscriber %s lagging, dropped oldest message (%d dropped so far)",
                self.name, self.dropped,
            )
        self._queue.put_nowait(item)

    def _close(self) -> None:
        self._queue.put_nowait(_CLOSED)

    async def recv(self) -> Message:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker for any later recv()
            self._queue.put_nowait(_CLOSED)
            raise BusClosed(f"control bus closed (subscriber {self.name})")
        return item

    def close(self) -> None:
        self._bus._unsubscribe(self)


class ControlBus:
    """Single-producer broadcast channel: every subscriber sees every message
    (unless it lags far enough behind to have old ones dropped)."""

    DEFAULT_CAPACITY = 16

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("bus capacity must be at least 1")
        self._capacity = capacity
        self._subscribers: Dict[int, Subscription] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribers(self) -> List[Subscription]:
        return list(self._subscribers.values())

    def subscribe(self, name: str) -> Subscription:
        if self._closed:
            raise BusClosed("cannot subscribe to a closed control bus")
        sub = Subscription(self, name, self._capacity)
        self._subscribers[id(sub)] = sub
        logger.debug("Subscriber %s attached", name)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        if self._subscribers.pop(id(sub), None) is not None:
            logger.debug("Subscriber %s detached", sub.name)

    def publish(self, message: Message) -> int:
        """Queue message for every subscriber without blocking.

        Returns the number of subscribers it was delivered to.
        """
        if self._closed:
            raise BusClosed("cannot publish on a closed control bus")
        subs = list(self._subscribers.values())
        for sub in subs:
            sub._put(message)
        if not subs:
            logger.warning("Published %s with no subscribers", type(message).__name__)
        return len(subs)

    def close(self, reason: Optional[str] = None) -> None:
        if self._closed:
            return
        self._closed = True
        for sub in list(self._subscribers.values()):
            sub._close()
        logger.info("Control bus closed%s", f" ({reason})" if reason else "")
