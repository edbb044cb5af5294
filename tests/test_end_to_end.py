"""Source to broker flow through the supervisor with a loopback source."""

from __future__ import annotations

import asyncio

import pytest
from mocks import FactoryRecorder, FakeBroker

from plcbridge.config.settings import RuntimeConfig
from plcbridge.services.supervisor import ConnectionSupervisor
from plcbridge.state.context import create_link_state


async def _until(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.mark.asyncio
async def test_frames_are_published_in_order() -> None:
    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        for piece in (b"\x02", b"41\x03\x02", b"42", b"\x03"):
            writer.write(piece)
            await writer.drain()
            await asyncio.sleep(0.01)
        await reader.read()
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    config = RuntimeConfig(host="127.0.0.1", port=port, qos=1, heartbeat_interval=0.02)
    state = create_link_state(config)
    brokers = FactoryRecorder(FakeBroker)
    supervisor = ConnectionSupervisor(config, state, broker_factory=brokers)
    task = asyncio.create_task(supervisor.run())
    try:
        await _until(lambda: len(state.pending) == 2)
        assert state.pending.snapshot() == ["41", "42"]

        supervisor.on_broker_connect(brokers.last)
        await _until(lambda: len(brokers.last.published) == 2)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        server.close()
        await server.wait_closed()

    assert [(call.topic, call.payload, call.qos) for call in brokers.last.published] == [
        ("sensor/flock", "41", 1),
        ("sensor/flock", "42", 1),
    ]
    assert state.messages_published == 2
    assert state.source_connections == 1


@pytest.mark.asyncio
async def test_text_mode_drops_empty_lines() -> None:
    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.write(b"A\r\nB\n\n")
        await writer.drain()
        await reader.read()
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    config = RuntimeConfig(host="127.0.0.1", port=port, text_mode=True, heartbeat_interval=0.02)
    state = create_link_state(config)
    brokers = FactoryRecorder(FakeBroker)
    supervisor = ConnectionSupervisor(config, state, broker_factory=brokers)
    task = asyncio.create_task(supervisor.run())
    try:
        await _until(lambda: len(state.pending) == 2)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        server.close()
        await server.wait_closed()

    assert state.pending.snapshot() == ["A", "B"]
    assert state.empty_lines_dropped == 1
