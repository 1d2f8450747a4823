from __future__ import annotations

import asyncio

import pytest

from holder_lottery.broadcast import Broadcaster
from holder_lottery.fee_estimate import estimate_fees
from holder_lottery.models import FeeAmounts
from holder_lottery.state import DrawPhase, DrawStateMachine


def test_subscribers_receive_transitions(clock):
    async def main():
        broadcaster = Broadcaster()
        queue = broadcaster.subscribe()
        sm = DrawStateMachine(clock=clock, observers=[broadcaster.notify])
        sm.begin_draw(force=True)
        sm.fail_draw()
        return [queue.get_nowait(), queue.get_nowait()], queue.empty()

    messages, drained = asyncio.run(main())
    assert [m["type"] for m in messages] == ["drawStatusUpdate"] * 2
    assert [m["data"]["currentState"] for m in messages] == ["EXECUTING", "WAITING"]
    assert drained


def test_full_queue_drops_oldest(clock):
    async def main():
        broadcaster = Broadcaster(queue_size=2)
        queue = broadcaster.subscribe()
        sm = DrawStateMachine(clock=clock)
        for phase in (DrawPhase.WAITING, DrawPhase.EXECUTING, DrawPhase.WAITING):
            status = sm.status()
            broadcaster.notify(type(status)(phase, status.next_draw_time, None))
        return [queue.get_nowait()["data"]["currentState"] for _ in range(queue.qsize())]

    assert asyncio.run(main()) == ["EXECUTING", "WAITING"]


def test_listener_failure_is_isolated(clock):
    received = []

    def broken(message):
        raise RuntimeError("socket closed")

    broadcaster = Broadcaster()
    broadcaster.add_listener(broken)
    broadcaster.add_listener(received.append)
    broadcaster.notify(DrawStateMachine(clock=clock).status())
    assert len(received) == 1


def test_unsubscribe_stops_delivery(clock):
    async def main():
        broadcaster = Broadcaster()
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)
        broadcaster.notify(DrawStateMachine(clock=clock).status())
        return queue.empty(), broadcaster.subscriber_count

    assert asyncio.run(main()) == (True, 0)


def test_stream_yields_messages(clock):
    async def main():
        broadcaster = Broadcaster()
        stream = broadcaster.stream()
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        broadcaster.notify(DrawStateMachine(clock=clock).status())
        message = await pending
        await stream.aclose()
        return message, broadcaster.subscriber_count

    message, remaining = asyncio.run(main())
    assert message["data"]["currentState"] == "WAITING"
    assert remaining == 0


def test_queue_size_must_be_positive():
    with pytest.raises(ValueError):
        Broadcaster(queue_size=0)


def test_new_subscriber_gets_current_status_first(clock):
    async def main():
        broadcaster = Broadcaster()
        sm = DrawStateMachine(clock=clock)
        broadcaster.track(sm)
        sm.begin_draw(force=True)
        stream = broadcaster.stream()
        first = await asyncio.wait_for(stream.__anext__(), 1)
        sm.fail_draw()
        second = await asyncio.wait_for(stream.__anext__(), 1)
        await stream.aclose()
        return first, second

    first, second = asyncio.run(main())
    assert first["type"] == "drawStatusUpdate"
    assert first["data"]["currentState"] == "EXECUTING"
    assert second["data"]["currentState"] == "WAITING"


def test_latest_fee_estimate_is_replayed_to_new_subscribers(clock):
    estimate = estimate_fees(FeeAmounts(0, 2 * 10**9), 150.0, 0.00002)

    async def main():
        broadcaster = Broadcaster(status_provider=DrawStateMachine(clock=clock).status)
        live = broadcaster.subscribe()
        broadcaster.notify_fees(estimate)
        late = broadcaster.subscribe()
        return [live.get_nowait() for _ in range(live.qsize())], [
            late.get_nowait() for _ in range(late.qsize())
        ]

    live, late = asyncio.run(main())
    assert [m["type"] for m in live] == ["drawStatusUpdate", "feesUpdate"]
    assert [m["type"] for m in late] == ["drawStatusUpdate", "feesUpdate"]
    assert late[1]["data"]["estimatedUsdValue"] == pytest.approx(300.0)


def test_notify_from_another_thread(clock):
    async def main():
        broadcaster = Broadcaster()
        queue = broadcaster.subscribe()
        status = DrawStateMachine(clock=clock).status()
        await asyncio.to_thread(broadcaster.notify, status)
        return await asyncio.wait_for(queue.get(), 1)

    message = asyncio.run(main())
    assert message["data"]["currentState"] == "WAITING"
