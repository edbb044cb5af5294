"""Shared link state for the bridging engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from ..config.settings import RuntimeConfig
from .queues import MessageBuffer

if TYPE_CHECKING:
    from ..transport.mqtt import BrokerConnection
    from ..transport.source import SourceConnection

logger = logging.getLogger("plcbridge.state")

__all__: Final[tuple[str, ...]] = (
    "LinkState",
    "SupervisorStats",
    "create_link_state",
)


@dataclass(slots=True)
class SupervisorStats:
    """Restart bookkeeping for one supervised task."""

    restarts: int = 0
    last_failure: str | None = None
    last_backoff: float = 0.0
    fatal: bool = False


@dataclass(slots=True)
class LinkState:
    """Process-lifetime record shared by the supervisor, decoder and pump.

    ``source`` and ``broker`` hold the live connection handles (``None``
    while absent). ``broker_online`` is only meaningful while ``broker`` is
    set; :meth:`clear_broker` keeps the two consistent.
    """

    pending: MessageBuffer
    active_topic: str = ""
    source: SourceConnection | None = None
    broker: BrokerConnection | None = None
    broker_online: bool = False
    publish_in_flight: bool = False
    raw_accumulator: bytearray = field(default_factory=bytearray)
    text_accumulator: bytearray = field(default_factory=bytearray)

    frames_decoded: int = 0
    frames_malformed: int = 0
    empty_lines_dropped: int = 0
    messages_published: int = 0
    publish_failures: int = 0
    source_connections: int = 0
    source_disconnects: int = 0
    broker_connections: int = 0
    broker_disconnects: int = 0
    supervisors: dict[str, SupervisorStats] = field(default_factory=dict)

    def reset_accumulators(self) -> None:
        if self.raw_accumulator or self.text_accumulator:
            logger.debug(
                "Discarding partial frame data (%d raw bytes, %d text bytes)",
                len(self.raw_accumulator),
                len(self.text_accumulator),
            )
        self.raw_accumulator.clear()
        self.text_accumulator.clear()

    def clear_source(self) -> None:
        if self.source is not None:
            self.source_disconnects += 1
        self.source = None
        self.reset_accumulators()

    def clear_broker(self) -> None:
        if self.broker is not None:
            self.broker_disconnects += 1
        self.broker = None
        self.broker_online = False

    def record_supervisor_failure(
        self,
        name: str,
        *,
        backoff: float,
        exc: BaseException | None,
        fatal: bool = False,
    ) -> None:
        stats = self.supervisors.setdefault(name, SupervisorStats())
        stats.restarts += 1
        stats.last_backoff = backoff
        stats.fatal = fatal
        stats.last_failure = repr(exc) if exc is not None else None

    def mark_supervisor_healthy(self, name: str) -> None:
        stats = self.supervisors.setdefault(name, SupervisorStats())
        stats.last_backoff = 0.0
        stats.fatal = False

    def build_metrics_snapshot(self) -> dict[str, Any]:
        return {
            "source_connected": self.source is not None,
            "broker_connected": self.broker is not None,
            "broker_online": self.broker_online,
            "publish_in_flight": self.publish_in_flight,
            "backlog": len(self.pending),
            "backlog_limit": self.pending.limit,
            "messages_dropped": self.pending.dropped_messages,
            "raw_accumulator_bytes": len(self.raw_accumulator),
            "text_accumulator_bytes": len(self.text_accumulator),
            "frames_decoded": self.frames_decoded,
            "frames_malformed": self.frames_malformed,
            "empty_lines_dropped": self.empty_lines_dropped,
            "messages_published": self.messages_published,
            "publish_failures": self.publish_failures,
            "source_connections": self.source_connections,
            "source_disconnects": self.source_disconnects,
            "broker_connections": self.broker_connections,
            "broker_disconnects": self.broker_disconnects,
            "supervisors": {
                name: {
                    "restarts": stats.restarts,
                    "last_backoff": stats.last_backoff,
                    "fatal": stats.fatal,
                }
                for name, stats in self.supervisors.items()
            },
        }


def create_link_state(config: RuntimeConfig) -> LinkState:
    """Create the link state with empty buffers and no connections."""
    return LinkState(
        pending=MessageBuffer(
            limit=config.queue_limit,
            overflow=config.overflow_policy,
        ),
        active_topic=config.topic,
    )
