import asyncio
from typing import Set, Tuple


def _offer(queue: asyncio.Queue, data) -> None:
    try:
        queue.put_nowait(data)
    except asyncio.QueueFull:
        pass


class Broadcaster:
    """
    A simple broadcaster for SSE (Server-Sent Events).

    Lifecycle events are published from request handlers and from the sweep
    scheduler thread, so each listener queue is fed through its own event loop.

    Attributes:
        listeners (set[tuple[asyncio.AbstractEventLoop, asyncio.Queue]]): Active listener queues.
    """
    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self.listeners: Set[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = set()

    async def subscribe(self):
        """
        Subscribe to the broadcast stream.

        Yields:
            Any: Items published to the stream.
        """
        listener = (asyncio.get_running_loop(), asyncio.Queue(maxsize=self.max_queue_size))
        self.listeners.add(listener)
        try:
            while True:
                item = await listener[1].get()
                yield item
        finally:
            self.listeners.discard(listener)

    def publish_nowait(self, data):
        """
        Publish data to all subscribers without waiting.

        Args:
            data (Any): The data to publish.
        """
        for listener in list(self.listeners):
            loop, queue = listener
            try:
                loop.call_soon_threadsafe(_offer, queue, data)
            except RuntimeError:
                # Listener's loop has been closed.
                self.listeners.discard(listener)

broadcaster = Broadcaster()
