"""Connection supervisor: the heartbeat that keeps both endpoints alive.

The supervisor is the only place that creates connection handles and the
single receiver of their events. A heartbeat creates a handle only while
none exists, so there is never more than one live handle per endpoint.
Events from a handle that has already been replaced are ignored.

Broker link::

    ABSENT -> CONNECTING (locked) -> ONLINE <-> OFFLINE (handle retained)
                                       |            |
                                       +-- close ---+--> ABSENT
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from plcbridge.config.settings import RuntimeConfig
from plcbridge.protocol.framing import FrameDecoder, FramingMode
from plcbridge.services.pump import PublishPump
from plcbridge.state.context import LinkState
from plcbridge.transport.mqtt import BrokerConnection
from plcbridge.transport.source import SourceConnection
from plcbridge.util import log_hexdump

logger = logging.getLogger("plcbridge.supervisor")

SourceFactory = Callable[[RuntimeConfig, "ConnectionSupervisor"], SourceConnection]
BrokerFactory = Callable[[RuntimeConfig, "ConnectionSupervisor"], BrokerConnection]


class ConnectionSupervisor:
    """Own the link state and drive both connections from a periodic tick."""

    def __init__(
        self,
        config: RuntimeConfig,
        state: LinkState,
        *,
        source_factory: SourceFactory = SourceConnection,
        broker_factory: BrokerFactory = BrokerConnection,
    ) -> None:
        self.config = config
        self.state = state
        self.source_factory = source_factory
        self.broker_factory = broker_factory
        self.pump = PublishPump(state, config.qos)
        self.decoder = FrameDecoder(
            state,
            FramingMode.TEXT if config.text_mode else FramingMode.BINARY,
            encoding=config.text_encoding,
            on_backlog=self.trigger_drain,
        )
        self._tasks: set[asyncio.Task[Any]] = set()

    async def run(self) -> None:
        logger.info(
            "Bridging %s:%d (%s framing) to %s topic %r (qos %d)",
            self.config.host,
            self.config.port,
            self.decoder.mode,
            self.config.broker_address.url,
            self.config.topic,
            self.config.qos,
        )
        try:
            while True:
                self.heartbeat()
                await asyncio.sleep(self.config.heartbeat_interval)
        finally:
            await self.shutdown()

    def heartbeat(self) -> None:
        state = self.state
        if state.source is None:
            source = self.source_factory(self.config, self)
            state.source = source
            source.task = self._spawn(source.run(), name="source-connection")

        if state.broker is None:
            state.broker_online = False
            state.publish_in_flight = True
            state.active_topic = self.config.topic
            broker = self.broker_factory(self.config, self)
            state.broker = broker
            broker.task = self._spawn(broker.run(), name="broker-connection")

    def trigger_drain(self) -> None:
        self._spawn(self.pump.drain(), name="publish-pump")

    async def shutdown(self) -> None:
        state = self.state
        if state.source is not None:
            state.source.cancel()
        if state.broker is not None:
            state.broker.cancel()
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        state.clear_source()
        state.clear_broker()
        logger.info("Connection supervisor stopped with %d message(s) pending", len(state.pending))

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s task failed: %s", task.get_name(), exc, exc_info=exc)

    # --- source events -------------------------------------------------

    def on_source_connected(self, connection: SourceConnection) -> None:
        if connection is not self.state.source:
            return
        self.state.source_connections += 1
        logger.info(
            "Socket connected to %s from %s",
            _format_address(connection.peername),
            _format_address(connection.sockname),
        )

    def on_source_data(self, connection: SourceConnection, chunk: bytes) -> None:
        if connection is not self.state.source:
            logger.debug("Ignoring %d bytes from a replaced source connection", len(chunk))
            return
        log_hexdump(logger, logging.DEBUG, "SOCK RX <", chunk)
        self.decoder.feed(chunk)

    def on_source_timeout(self, connection: SourceConnection) -> None:
        logger.info("Socket timeout")

    def on_source_disconnect(self, connection: SourceConnection) -> None:
        logger.info("Socket disconnected")
        if connection is self.state.source:
            self.state.clear_source()

    def on_source_error(self, connection: SourceConnection, exc: BaseException) -> None:
        logger.error("Socket error: %s", exc or type(exc).__name__)
        connection.abort()
        if connection is self.state.source:
            self.state.clear_source()

    # --- broker events -------------------------------------------------

    def on_broker_connect(self, connection: BrokerConnection) -> None:
        if connection is not self.state.broker:
            return
        state = self.state
        state.broker_connections += 1
        logger.info("Connected to MQTT broker %s", connection.address.url)
        state.broker_online = True
        self.pump.release()
        if state.pending:
            self.trigger_drain()

    def on_broker_offline(self, connection: BrokerConnection, exc: BaseException | None) -> None:
        logger.warning("Connection to MQTT broker is now offline: %s", exc)
        if connection is self.state.broker:
            self.state.broker_online = False

    def on_broker_error(self, connection: BrokerConnection, exc: BaseException) -> None:
        logger.error("MQTT error: %s", exc)

    def on_broker_message(self, connection: BrokerConnection, topic: str, payload: Any) -> None:
        logger.info("MQTT message (%s): %r", topic, payload)

    def on_broker_close(self, connection: BrokerConnection) -> None:
        logger.info("Connection to MQTT broker closed")
        if connection is self.state.broker:
            self.state.clear_broker()


def _format_address(address: Any) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)
