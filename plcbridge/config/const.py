"""Default values and tunables for the PLC MQTT bridge."""

from __future__ import annotations

from typing import Final

DEFAULT_SOURCE_HOST: Final[str] = "localhost"
DEFAULT_SOURCE_PORT: Final[int] = 1000
DEFAULT_BROKER: Final[str] = "localhost"
DEFAULT_TOPIC: Final[str] = "sensor/flock"
DEFAULT_QOS: Final[int] = 0

DEFAULT_MQTT_SCHEME: Final[str] = "mqtt"
DEFAULT_MQTT_PORT: Final[int] = 1883
DEFAULT_MQTTS_PORT: Final[int] = 8883
MQTT_TLS_SCHEMES: Final[frozenset[str]] = frozenset({"mqtts", "ssl"})
MQTT_PLAIN_SCHEMES: Final[frozenset[str]] = frozenset({"mqtt", "tcp"})
MQTT_QOS_LEVELS: Final[tuple[int, ...]] = (0, 1, 2)

DEFAULT_HEARTBEAT_INTERVAL: Final[float] = 1.0
DEFAULT_SOURCE_TIMEOUT: Final[float] = 5.0
DEFAULT_CONNECT_TIMEOUT: Final[float] = 5.0
DEFAULT_READ_SIZE: Final[int] = 4096
DEFAULT_TEXT_ENCODING: Final[str] = "utf-8"

DEFAULT_QUEUE_LIMIT: Final[int] = 0
DEFAULT_OVERFLOW_POLICY: Final[str] = "drop-oldest"

DEFAULT_BROKER_RECONNECT_DELAY: Final[float] = 1.0
DEFAULT_BROKER_RECONNECT_ATTEMPTS: Final[int] = 0
DEFAULT_PUBLISH_TIMEOUT: Final[float] = 10.0

DEFAULT_METRICS_HOST: Final[str] = "127.0.0.1"
DEFAULT_METRICS_PORT: Final[int] = 0

SUPERVISOR_DEFAULT_MIN_BACKOFF: Final[float] = 1.0
SUPERVISOR_DEFAULT_MAX_BACKOFF: Final[float] = 30.0
SUPERVISOR_DEFAULT_RESTART_INTERVAL: Final[float] = 60.0
SUPERVISOR_MIN_RESTART_WINDOW: Final[float] = 10.0
SUPERVISOR_EXPORTER_MAX_RESTARTS: Final[int] = 5
