"""Tests for the TCP source connection against a loopback server."""

from __future__ import annotations

import asyncio
import socket

import pytest

from plcbridge.config.settings import RuntimeConfig
from plcbridge.transport.source import SourceConnection


class RecordingHandler:
    def __init__(self) -> None:
        self.events: list[str] = []
        self.chunks: list[bytes] = []
        self.errors: list[BaseException] = []

    def on_source_connected(self, connection: SourceConnection) -> None:
        self.events.append("connected")

    def on_source_data(self, connection: SourceConnection, chunk: bytes) -> None:
        self.events.append("data")
        self.chunks.append(chunk)

    def on_source_timeout(self, connection: SourceConnection) -> None:
        self.events.append("timeout")

    def on_source_disconnect(self, connection: SourceConnection) -> None:
        self.events.append("disconnect")

    def on_source_error(self, connection: SourceConnection, exc: BaseException) -> None:
        self.events.append("error")
        self.errors.append(exc)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _config(port: int) -> RuntimeConfig:
    return RuntimeConfig(host="127.0.0.1", port=port, source_timeout=0.05, connect_timeout=0.5)


@pytest.mark.asyncio
async def test_reads_until_peer_closes() -> None:
    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.write(b"\x0241\x03\x0242\x03")
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    handler = RecordingHandler()
    try:
        connection = SourceConnection(_config(port), handler)
        await asyncio.wait_for(connection.run(), timeout=2.0)
    finally:
        server.close()
        await server.wait_closed()

    assert handler.events[0] == "connected"
    assert handler.events[-1] == "disconnect"
    assert b"".join(handler.chunks) == b"\x0241\x03\x0242\x03"
    assert connection.peername[1] == port
    assert not connection.connected


@pytest.mark.asyncio
async def test_idle_source_reports_timeout_and_stays_open() -> None:
    release = asyncio.Event()

    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await release.wait()
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    handler = RecordingHandler()
    connection = SourceConnection(_config(port), handler)
    task = asyncio.create_task(connection.run())
    try:
        while "timeout" not in handler.events:
            await asyncio.sleep(0.01)
        assert connection.connected
        release.set()
        await asyncio.wait_for(task, timeout=2.0)
    finally:
        server.close()
        await server.wait_closed()

    assert handler.events[0] == "connected"
    assert handler.events[-1] == "disconnect"


@pytest.mark.asyncio
async def test_refused_connection_reports_error() -> None:
    handler = RecordingHandler()
    connection = SourceConnection(_config(_free_port()), handler)

    await asyncio.wait_for(connection.run(), timeout=2.0)

    assert handler.events == ["error"]
    assert isinstance(handler.errors[0], OSError)


@pytest.mark.asyncio
async def test_cancel_stops_the_read_loop() -> None:
    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.read()
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    handler = RecordingHandler()
    connection = SourceConnection(_config(port), handler)
    connection.task = asyncio.create_task(connection.run())
    try:
        while "connected" not in handler.events:
            await asyncio.sleep(0.01)
        connection.cancel()
        with pytest.raises(asyncio.CancelledError):
            await connection.task
    finally:
        server.close()
        await server.wait_closed()

    assert "disconnect" not in handler.events


@pytest.mark.asyncio
async def test_invalid_host_label_reports_error() -> None:
    handler = RecordingHandler()
    config = RuntimeConfig(host="a" * 70 + ".example", connect_timeout=0.5)
    connection = SourceConnection(config, handler)

    await asyncio.wait_for(connection.run(), timeout=2.0)

    assert handler.events == ["error"]
    assert isinstance(handler.errors[0], UnicodeError)


@pytest.mark.asyncio
async def test_handler_failure_ends_epoch_with_error() -> None:
    class ExplodingHandler(RecordingHandler):
        def on_source_data(self, connection: SourceConnection, chunk: bytes) -> None:
            raise KeyError("decoder bug")

    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.write(b"\x02x\x03")
        await writer.drain()
        await reader.read()
        writer.close()

    server = await asyncio.start_server(serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    handler = ExplodingHandler()
    try:
        await asyncio.wait_for(SourceConnection(_config(port), handler).run(), timeout=2.0)
    finally:
        server.close()
        await server.wait_closed()

    assert handler.events == ["connected", "error"]
    assert isinstance(handler.errors[0], KeyError)
