"""TCP source transport for the PLC MQTT bridge."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from plcbridge.config.settings import RuntimeConfig

logger = logging.getLogger("plcbridge.source")


class SourceHandler(Protocol):
    def on_source_connected(self, connection: SourceConnection) -> None: ...

    def on_source_data(self, connection: SourceConnection, chunk: bytes) -> None: ...

    def on_source_timeout(self, connection: SourceConnection) -> None: ...

    def on_source_disconnect(self, connection: SourceConnection) -> None: ...

    def on_source_error(self, connection: SourceConnection, exc: BaseException) -> None: ...


class SourceConnection:
    """One TCP connection epoch to the data source.

    The connection never reconnects by itself: it reports ``disconnect`` or
    ``error`` once and stops. Idle periods longer than ``source_timeout``
    are reported as ``timeout`` without closing the socket.
    """

    def __init__(self, config: RuntimeConfig, handler: SourceHandler) -> None:
        self.host = config.host
        self.port = config.port
        self.connect_timeout = config.connect_timeout
        self.idle_timeout = config.source_timeout
        self.read_size = config.read_size
        self.handler = handler
        self.task: asyncio.Task[None] | None = None
        self.peername: Any = None
        self.sockname: Any = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def run(self) -> None:
        """Run one epoch; it ends with a single disconnect or error event unless cancelled."""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            self.handler.on_source_error(self, exc)
            return
        except Exception as exc:
            # e.g. UnicodeError from the resolver for an invalid host label
            logger.error("Cannot connect to %s:%d: %r", self.host, self.port, exc)
            self.handler.on_source_error(self, exc)
            return

        self._writer = writer
        self.peername = writer.get_extra_info("peername")
        self.sockname = writer.get_extra_info("sockname")
        self.handler.on_source_connected(self)

        try:
            await self._read_loop(reader)
        except OSError as exc:
            self.handler.on_source_error(self, exc)
        except Exception as exc:
            logger.error("Source read loop failed: %r", exc, exc_info=True)
            self.handler.on_source_error(self, exc)
        finally:
            self.close()

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                chunk = await asyncio.wait_for(
                    reader.read(self.read_size),
                    timeout=self.idle_timeout,
                )
            except asyncio.TimeoutError:
                self.handler.on_source_timeout(self)
                continue

            if not chunk:
                self.handler.on_source_disconnect(self)
                return
            self.handler.on_source_data(self, chunk)

    def abort(self) -> None:
        """Drop the socket immediately, discarding unsent data."""
        writer = self._writer
        if writer is not None and not writer.is_closing():
            writer.transport.abort()

    def close(self) -> None:
        writer = self._writer
        if writer is not None and not writer.is_closing():
            writer.close()

    def cancel(self) -> None:
        if self.task is not None and not self.task.done():
            self.task.cancel()
        self.close()


__all__ = ["SourceConnection", "SourceHandler"]
