import asyncio
import json
import logging
from contextlib import suppress

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ..event_broadcast import broadcaster

router = APIRouter()
logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 25  # seconds; below the usual 55s proxy idle timeout


async def _event_stream(sub, heartbeat_interval: float = HEARTBEAT_INTERVAL):
    """
    Turn broadcaster items into SSE frames, with a keep-alive comment whenever
    the stream has been quiet for `heartbeat_interval` seconds.
    """
    event_task = asyncio.create_task(sub.__anext__())
    heartbeat_task = asyncio.create_task(asyncio.sleep(heartbeat_interval))
    try:
        while True:
            done, _ = await asyncio.wait(
                {event_task, heartbeat_task},
                return_when=asyncio.FIRST_COMPLETED,
            )

            if event_task in done:
                try:
                    item = event_task.result()
                except StopAsyncIteration:
                    return
                event = item.get("event", "message")
                yield f"event: {event}\ndata: {json.dumps(item, default=str)}\n\n"
                event_task = asyncio.create_task(sub.__anext__())

            if heartbeat_task in done:
                yield ": keep-alive\n\n"
                heartbeat_task = asyncio.create_task(asyncio.sleep(heartbeat_interval))
    except Exception:
        logger.exception("Lifecycle event stream failed")
        raise
    finally:
        for task in (event_task, heartbeat_task):
            task.cancel()
        with suppress(asyncio.CancelledError, StopAsyncIteration):
            await event_task
        with suppress(asyncio.CancelledError):
            await heartbeat_task
        with suppress(RuntimeError):
            await sub.aclose()


@router.get("/events/stream")
def lifecycle_event_stream():
    """
    SSE endpoint streaming lifecycle events (expirations, archivals, blotter
    milestones) as they happen.

    Returns:
        StreamingResponse: Server-Sent Events stream.
    """
    return StreamingResponse(_event_stream(broadcaster.subscribe()), media_type="text/event-stream")
