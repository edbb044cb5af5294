"""MQTT transport for the PLC MQTT bridge.

A :class:`BrokerConnection` is one broker handle. While it is alive it keeps
its own session up, reconnecting at a fixed delay, and reports every state
change to its handler. Once it leaves its run loop the handle is closed for
good and the connection supervisor creates a fresh one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import aiomqtt
import tenacity
from transitions import Machine

from plcbridge.config.settings import RuntimeConfig
from plcbridge.util.mqtt_helper import configure_tls_context

logger = logging.getLogger("plcbridge.mqtt")

_RETRYABLE_ERRORS = (aiomqtt.MqttError, OSError, asyncio.TimeoutError)


class PublishError(RuntimeError):
    """A publish request was not acknowledged by the broker."""


class BrokerHandler(Protocol):
    def on_broker_connect(self, connection: BrokerConnection) -> None: ...

    def on_broker_offline(self, connection: BrokerConnection, exc: BaseException | None) -> None: ...

    def on_broker_error(self, connection: BrokerConnection, exc: BaseException) -> None: ...

    def on_broker_message(self, connection: BrokerConnection, topic: str, payload: Any) -> None: ...

    def on_broker_close(self, connection: BrokerConnection) -> None: ...


class BrokerConnection:
    """Broker handle with FSM-based state management."""

    # FSM States
    STATE_CONNECTING = "connecting"
    STATE_ONLINE = "online"
    STATE_OFFLINE = "offline"
    STATE_CLOSED = "closed"

    def __init__(self, config: RuntimeConfig, handler: BrokerHandler) -> None:
        self.config = config
        self.handler = handler
        self.address = config.broker_address
        self.task: asyncio.Task[None] | None = None
        self.fsm_state = self.STATE_CONNECTING
        self._client: aiomqtt.Client | None = None
        self._failures = 0

        self.machine = Machine(
            model=self,
            states=[
                self.STATE_CONNECTING,
                self.STATE_ONLINE,
                self.STATE_OFFLINE,
                self.STATE_CLOSED,
            ],
            initial=self.STATE_CONNECTING,
            model_attribute="fsm_state",
            ignore_invalid_triggers=True,
        )

        self.machine.add_transition(
            "session_up", [self.STATE_CONNECTING, self.STATE_OFFLINE], self.STATE_ONLINE
        )
        self.machine.add_transition(
            "session_lost", [self.STATE_CONNECTING, self.STATE_ONLINE], self.STATE_OFFLINE
        )
        self.machine.add_transition("shutdown", "*", self.STATE_CLOSED)

    @property
    def online(self) -> bool:
        return self.fsm_state == self.STATE_ONLINE and self._client is not None

    @property
    def closed(self) -> bool:
        return self.fsm_state == self.STATE_CLOSED

    def _stop_reconnecting(self, retry_state: tenacity.RetryCallState) -> bool:
        limit = self.config.broker_reconnect_attempts
        return limit > 0 and self._failures >= limit

    def _log_retry_attempt(self, retry_state: tenacity.RetryCallState) -> None:
        logger.info(
            "Reconnecting to MQTT broker %s (failure %d, next attempt in %.2fs)",
            self.address.url,
            self._failures,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    async def run(self) -> None:
        """Keep a broker session up until cancelled or out of attempts."""
        retryer = tenacity.AsyncRetrying(
            wait=tenacity.wait_fixed(self.config.broker_reconnect_delay),
            retry=tenacity.retry_if_exception_type(_RETRYABLE_ERRORS),
            stop=self._stop_reconnecting,
            before_sleep=self._log_retry_attempt,
            reraise=True,
        )

        try:
            tls_context = configure_tls_context(self.config)
            async for attempt in retryer:
                with attempt:
                    await self._connect_session(tls_context)
        except _RETRYABLE_ERRORS as exc:
            logger.error(
                "Giving up on MQTT broker %s after %d failed attempts: %s",
                self.address.url,
                self._failures,
                exc,
            )
            self.handler.on_broker_error(self, exc)
        except RuntimeError as exc:
            logger.error("MQTT broker setup failed: %s", exc)
            self.handler.on_broker_error(self, exc)
        finally:
            self._client = None
            self.trigger("shutdown")
            self.handler.on_broker_close(self)

    async def _connect_session(self, tls_context: Any) -> None:
        try:
            async with aiomqtt.Client(
                hostname=self.address.host,
                port=self.address.port,
                identifier=self.config.mqtt_client_id or None,
                username=self.config.mqtt_user or None,
                password=self.config.mqtt_pass or None,
                tls_context=tls_context,
                logger=logging.getLogger("plcbridge.mqtt.client"),
                timeout=self.config.publish_timeout,
            ) as client:
                self._client = client
                self._failures = 0
                self.trigger("session_up")
                self.handler.on_broker_connect(self)

                async for message in client.messages:
                    self.handler.on_broker_message(self, str(message.topic), message.payload)
        except _RETRYABLE_ERRORS as exc:
            self._failures += 1
            self._client = None
            self.trigger("session_lost")
            self.handler.on_broker_offline(self, exc)
            raise
        finally:
            self._client = None

    async def publish(self, topic: str, payload: str, qos: int) -> None:
        """Publish *payload* and wait for the broker acknowledgement.

        Raises:
            PublishError: no session, or aiomqtt reported a failure.
        """
        client = self._client
        if client is None or not self.online:
            raise PublishError(f"MQTT broker {self.address.url} is not connected")
        try:
            await client.publish(topic, payload, qos=qos, timeout=self.config.publish_timeout)
        except aiomqtt.MqttError as exc:
            raise PublishError(str(exc)) from exc

    def cancel(self) -> None:
        if self.task is not None and not self.task.done():
            self.task.cancel()


__all__ = ["BrokerConnection", "BrokerHandler", "PublishError"]
