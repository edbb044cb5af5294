"""Settings loader for the PLC MQTT bridge.

Configuration comes from built-in defaults overridden once by command-line
options (see :mod:`plcbridge.cli`). The resulting :class:`RuntimeConfig` is
never mutated after the engine starts.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from ..state.queues import OverflowPolicy
from .common import BrokerAddress, parse_broker_address
from .const import (
    DEFAULT_BROKER,
    DEFAULT_BROKER_RECONNECT_ATTEMPTS,
    DEFAULT_BROKER_RECONNECT_DELAY,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    DEFAULT_OVERFLOW_POLICY,
    DEFAULT_PUBLISH_TIMEOUT,
    DEFAULT_QOS,
    DEFAULT_QUEUE_LIMIT,
    DEFAULT_READ_SIZE,
    DEFAULT_SOURCE_HOST,
    DEFAULT_SOURCE_PORT,
    DEFAULT_SOURCE_TIMEOUT,
    DEFAULT_TEXT_ENCODING,
    DEFAULT_TOPIC,
    MQTT_QOS_LEVELS,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for the daemon."""

    host: str = DEFAULT_SOURCE_HOST
    port: int = DEFAULT_SOURCE_PORT
    broker: str = DEFAULT_BROKER
    topic: str = DEFAULT_TOPIC
    qos: int = DEFAULT_QOS
    text_mode: bool = False
    quiet: bool = False
    verbose: bool = False
    log_file: str | None = None

    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    source_timeout: float = DEFAULT_SOURCE_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_size: int = DEFAULT_READ_SIZE
    text_encoding: str = DEFAULT_TEXT_ENCODING

    queue_limit: int = DEFAULT_QUEUE_LIMIT
    overflow_policy: OverflowPolicy = OverflowPolicy(DEFAULT_OVERFLOW_POLICY)

    mqtt_client_id: str = ""
    mqtt_user: str | None = None
    mqtt_pass: str | None = field(default=None, repr=False)
    mqtt_cafile: str | None = None
    mqtt_tls_insecure: bool = False
    broker_reconnect_delay: float = DEFAULT_BROKER_RECONNECT_DELAY
    broker_reconnect_attempts: int = DEFAULT_BROKER_RECONNECT_ATTEMPTS
    publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT

    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = DEFAULT_METRICS_PORT

    broker_address: BrokerAddress = field(init=False)

    @property
    def tls_enabled(self) -> bool:
        return self.broker_address.tls

    @property
    def mqtt_host(self) -> str:
        return self.broker_address.host

    @property
    def mqtt_port(self) -> int:
        return self.broker_address.port

    @property
    def metrics_enabled(self) -> bool:
        return self.metrics_port > 0

    def __post_init__(self) -> None:
        self.host = self.host.strip()
        if not self.host:
            raise ValueError("host must be a non-empty hostname or address")
        self.port = self._require_port("port", self.port)
        if self.qos not in MQTT_QOS_LEVELS:
            raise ValueError(f"qos must be one of {MQTT_QOS_LEVELS}, got {self.qos}")
        self._validate_topic()

        self.broker_address = parse_broker_address(self.broker)
        if self.mqtt_user is None and self.broker_address.username:
            self.mqtt_user = self.broker_address.username
            self.mqtt_pass = self.broker_address.password

        self.overflow_policy = OverflowPolicy(self.overflow_policy)
        if self.queue_limit < 0:
            raise ValueError("queue_limit must be zero (unbounded) or positive")

        for field_name in (
            "heartbeat_interval",
            "source_timeout",
            "connect_timeout",
            "broker_reconnect_delay",
            "publish_timeout",
        ):
            value = float(getattr(self, field_name))
            setattr(self, field_name, self._require_positive_float(field_name, value))
        if self.read_size <= 0:
            raise ValueError("read_size must be a positive integer")
        if self.broker_reconnect_attempts < 0:
            raise ValueError("broker_reconnect_attempts must be zero (unlimited) or positive")

        if self.metrics_port:
            self.metrics_port = self._require_port("metrics_port", self.metrics_port)

        if self.log_file:
            self.log_file = os.path.abspath(os.path.expanduser(self.log_file))

        if self.mqtt_cafile and not self.tls_enabled:
            logger.warning(
                "mqtt_cafile is set but broker %s does not use TLS; ignoring it.",
                self.broker_address.url,
            )

    def _validate_topic(self) -> None:
        topic = self.topic.strip()
        if not topic:
            raise ValueError("topic must be a non-empty string")
        if "+" in topic or "#" in topic:
            raise ValueError("topic must not contain MQTT wildcards")
        self.topic = topic

    @staticmethod
    def _require_port(name: str, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"{name} must be between 1 and 65535, got {value}")
        return value

    @staticmethod
    def _require_positive_float(name: str, value: float) -> float:
        if value <= 0.0:
            raise ValueError(f"{name} must be a positive number")
        return value

    def as_dict(self) -> dict[str, Any]:
        """Return the effective configuration with secrets masked."""
        payload: dict[str, Any] = {}
        for item in dataclasses.fields(self):
            payload[item.name] = getattr(self, item.name)
        payload["broker"] = self.broker_address.url
        payload["broker_address"] = {
            "scheme": self.broker_address.scheme,
            "host": self.broker_address.host,
            "port": self.broker_address.port,
        }
        payload["overflow_policy"] = str(self.overflow_policy)
        if payload.get("mqtt_pass"):
            payload["mqtt_pass"] = "********"
        return payload


_OPTION_FIELDS: tuple[tuple[str, str], ...] = (
    ("host", "host"),
    ("port", "port"),
    ("broker", "broker"),
    ("topic", "topic"),
    ("qos", "qos"),
    ("text", "text_mode"),
    ("quiet", "quiet"),
    ("verbose", "verbose"),
    ("log", "log_file"),
    ("heartbeat", "heartbeat_interval"),
    ("source_timeout", "source_timeout"),
    ("connect_timeout", "connect_timeout"),
    ("queue_limit", "queue_limit"),
    ("overflow", "overflow_policy"),
    ("client_id", "mqtt_client_id"),
    ("username", "mqtt_user"),
    ("password", "mqtt_pass"),
    ("cafile", "mqtt_cafile"),
    ("tls_insecure", "mqtt_tls_insecure"),
    ("broker_retries", "broker_reconnect_attempts"),
    ("metrics_host", "metrics_host"),
    ("metrics_port", "metrics_port"),
)


def load_runtime_config(options: argparse.Namespace | None = None) -> RuntimeConfig:
    """Build the runtime configuration from defaults plus parsed options.

    Options left unset (``None``) keep their default value.
    """
    overrides: dict[str, Any] = {}
    if options is not None:
        for option_name, field_name in _OPTION_FIELDS:
            value = getattr(options, option_name, None)
            if value is None:
                continue
            overrides[field_name] = value
    return RuntimeConfig(**overrides)
