import asyncio
import json

from BarangayAPI.event_broadcast import Broadcaster
from BarangayAPI.routes.events import _event_stream


def test_broadcaster_delivers_and_forgets_closed_subscribers():
    async def scenario():
        broadcaster = Broadcaster()
        sub = broadcaster.subscribe()
        pending = asyncio.ensure_future(sub.__anext__())
        await asyncio.sleep(0)
        broadcaster.publish_nowait({"event": "request.expired", "request_id": 7})
        item = await asyncio.wait_for(pending, 1)
        await sub.aclose()
        return item, len(broadcaster.listeners)

    item, listeners = asyncio.run(scenario())
    assert item == {"event": "request.expired", "request_id": 7}
    assert listeners == 0


def test_full_listener_queue_drops_items():
    async def scenario():
        broadcaster = Broadcaster(max_queue_size=2)
        sub = broadcaster.subscribe()
        pending = asyncio.ensure_future(sub.__anext__())
        await asyncio.sleep(0)
        for n in range(3):
            broadcaster.publish_nowait({"n": n})
        received = [await asyncio.wait_for(pending, 1)]
        received.append(await asyncio.wait_for(sub.__anext__(), 1))
        queue_sizes = [queue.qsize() for _, queue in broadcaster.listeners]
        await sub.aclose()
        return received, queue_sizes

    received, queue_sizes = asyncio.run(scenario())
    assert received == [{"n": 0}, {"n": 1}]
    assert queue_sizes == [0]


def test_event_stream_frames_and_heartbeat():
    async def scenario():
        broadcaster = Broadcaster()
        stream = _event_stream(broadcaster.subscribe(), heartbeat_interval=0.05)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0.01)
        broadcaster.publish_nowait({"event": "blotter.cfa_issued", "blotter_case_id": 3})
        frame = await asyncio.wait_for(pending, 1)
        heartbeat = await asyncio.wait_for(stream.__anext__(), 1)
        await stream.aclose()
        return frame, heartbeat, len(broadcaster.listeners)

    frame, heartbeat, listeners = asyncio.run(scenario())
    header, data = frame.strip().split("\n")
    assert header == "event: blotter.cfa_issued"
    assert json.loads(data[len("data: "):]) == {"event": "blotter.cfa_issued", "blotter_case_id": 3}
    assert heartbeat == ": keep-alive\n\n"
    assert listeners == 0
