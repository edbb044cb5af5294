"""Publish pump: serialised delivery of buffered messages to the broker."""

from __future__ import annotations

import asyncio
import logging

from plcbridge.state.context import LinkState
from plcbridge.transport.mqtt import PublishError

logger = logging.getLogger("plcbridge.pump")


class PublishPump:
    """Drain ``state.pending`` to the broker, one publish at a time.

    ``state.publish_in_flight`` is the only lock. It is held while a publish
    awaits its acknowledgement and, between the creation of a broker handle
    and its first ``connect`` event, on behalf of that handle.
    """

    def __init__(self, state: LinkState, qos: int = 0) -> None:
        self.state = state
        self.qos = qos
        self._publishing = False

    @property
    def publishing(self) -> bool:
        return self._publishing

    def release(self) -> None:
        """Drop the connect-time lock unless a publish is outstanding."""
        if not self._publishing:
            self.state.publish_in_flight = False

    async def drain(self) -> int:
        """Deliver as much of the backlog as possible.

        Returns the number of messages acknowledged by the broker.
        """
        state = self.state
        if state.publish_in_flight:
            logger.debug("Processing message buffer already in progress")
            return 0

        delivered = 0
        while True:
            broker = state.broker
            if broker is None or not state.broker_online:
                return delivered
            if not state.pending:
                return delivered

            message = state.pending.popleft()
            connect_epoch = state.broker_connections
            state.publish_in_flight = True
            self._publishing = True
            try:
                await broker.publish(state.active_topic, message, self.qos)
            except asyncio.CancelledError:
                state.pending.requeue(message)
                raise
            except PublishError as exc:
                state.pending.requeue(message)
                state.publish_failures += 1
                logger.warning("MQTT publish failed (%s); message requeued.", exc)
                if state.broker is None or not state.broker_online:
                    return delivered
                if state.broker is broker and state.broker_connections == connect_epoch:
                    return delivered
                # A connect (new handle or the same one reconnecting) happened
                # while this publish was outstanding; its drain found the lock held.
                continue
            finally:
                self._publishing = False
                # A handle created meanwhile keeps the lock until it connects.
                state.publish_in_flight = (
                    state.broker is not None
                    and state.broker is not broker
                    and not state.broker_online
                )

            state.messages_published += 1
            delivered += 1
            logger.debug("Published message to %s: %r", state.active_topic, message)
