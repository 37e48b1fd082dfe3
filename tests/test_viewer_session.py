"""Tests for a single viewer session's lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from services.realtime.viewer_session import ViewerSession
from tests.fakes import FakeConnection, wait_until


async def start(registry, connection, capacity: int = 8):
    session = ViewerSession(connection, registry, queue_capacity=capacity)
    task = asyncio.create_task(session.run())
    await wait_until(lambda: session.session_id in registry)
    return session, task


@pytest.mark.asyncio
async def test_writer_delivers_in_enqueue_order(registry):
    connection = FakeConnection()
    session, task = await start(registry, connection)
    for index in range(5):
        assert session.offer(f"m{index}")
    await wait_until(lambda: len(connection.sent) == 5)
    assert connection.sent == ["m0", "m1", "m2", "m3", "m4"]
    session.kill("done")
    await asyncio.wait_for(task, 1.0)


@pytest.mark.asyncio
async def test_inbound_frames_are_ignored(registry):
    connection = FakeConnection()
    session, task = await start(registry, connection)
    connection.peer_send("hello")
    connection.peer_send("ping")
    await asyncio.sleep(0.02)
    assert session.alive
    assert not task.done()
    session.kill("done")
    await asyncio.wait_for(task, 1.0)


@pytest.mark.asyncio
async def test_peer_close_tears_down(registry):
    connection = FakeConnection()
    session, task = await start(registry, connection)
    connection.peer_disconnect(1001)
    await asyncio.wait_for(task, 1.0)
    assert session.session_id not in registry
    assert session.alive is False
    assert session.closed
    assert "peer closed" in session.close_reason
    assert connection.close_calls == 1


@pytest.mark.asyncio
async def test_write_failure_tears_down(registry):
    connection = FakeConnection(fail_sends=True)
    session, task = await start(registry, connection)
    session.offer("img")
    await asyncio.wait_for(task, 1.0)
    assert session.session_id not in registry
    assert "write failed" in session.close_reason
    assert connection.closed


@pytest.mark.asyncio
async def test_kill_closes_connection_and_drops_queue(registry):
    connection = FakeConnection(block_sends=True)
    session, task = await start(registry, connection)
    session.offer("a")
    await asyncio.sleep(0)
    session.offer("b")
    session.offer("c")
    session.kill("slow consumer: outbound queue full")
    await asyncio.wait_for(task, 1.0)
    assert connection.closed
    assert session.queue.empty()
    assert session.close_reason == "slow consumer: outbound queue full"
    assert session.offer("d") is False


@pytest.mark.asyncio
async def test_close_runs_once(registry):
    connection = FakeConnection()
    session, task = await start(registry, connection)
    await session.close("first")
    await session.close("second")
    await asyncio.wait_for(task, 1.0)
    assert connection.close_calls == 1
    assert session.close_reason == "first"


@pytest.mark.asyncio
async def test_cancelled_run_still_tears_down(registry):
    connection = FakeConnection()
    session, task = await start(registry, connection)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert session.session_id not in registry
    assert connection.closed


@pytest.mark.asyncio
async def test_close_error_is_contained(registry):
    class BrokenClose(FakeConnection):
        async def close(self, code: int = 1000) -> None:
            raise RuntimeError("already closed")

    session, task = await start(registry, BrokenClose())
    session.kill("done")
    await asyncio.wait_for(task, 1.0)
    assert session.closed


def test_rejects_non_positive_capacity(registry):
    with pytest.raises(ValueError):
        ViewerSession(FakeConnection(), registry, queue_capacity=0)
