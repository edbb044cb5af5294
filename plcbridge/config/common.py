"""Broker address helpers and default configuration values."""

from __future__ import annotations

import logging
import re
from typing import Any, Final
from urllib.parse import unquote, urlsplit

import msgspec

from .const import (
    DEFAULT_BROKER,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_SCHEME,
    DEFAULT_MQTTS_PORT,
    DEFAULT_QOS,
    DEFAULT_SOURCE_HOST,
    DEFAULT_SOURCE_PORT,
    DEFAULT_TOPIC,
    MQTT_PLAIN_SCHEMES,
    MQTT_TLS_SCHEMES,
)

logger = logging.getLogger(__name__)

_SCHEME_RE: Final[re.Pattern[str]] = re.compile(r"^([a-z][a-z0-9+.-]*)://", re.IGNORECASE)
_PORT_RE: Final[re.Pattern[str]] = re.compile(r":\d+$")


class BrokerAddress(msgspec.Struct, frozen=True):
    """Broker endpoint resolved from a user supplied address."""

    scheme: str
    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @property
    def tls(self) -> bool:
        return self.scheme in MQTT_TLS_SCHEMES

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"


def normalize_broker_address(broker: str) -> str:
    """Return *broker* with a scheme and a port.

    A bare host (or host:port) gets the ``mqtt://`` prefix; an address
    without a trailing port gets the default port for its scheme.
    """
    candidate = broker.strip().rstrip("/")
    match = _SCHEME_RE.match(candidate)
    if match is None:
        scheme = DEFAULT_MQTT_SCHEME
        candidate = f"{scheme}://{candidate}"
    else:
        scheme = match.group(1).lower()

    if not _PORT_RE.search(candidate):
        port = DEFAULT_MQTTS_PORT if scheme in MQTT_TLS_SCHEMES else DEFAULT_MQTT_PORT
        candidate = f"{candidate}:{port}"
    return candidate


def parse_broker_address(broker: str) -> BrokerAddress:
    """Normalise and split a broker address.

    Raises:
        ValueError: unknown scheme, missing host or invalid port.
    """
    normalized = normalize_broker_address(broker)
    parts = urlsplit(normalized)
    scheme = parts.scheme.lower()
    if scheme not in MQTT_PLAIN_SCHEMES | MQTT_TLS_SCHEMES:
        raise ValueError(f"Unsupported broker scheme: {parts.scheme}")
    if not parts.hostname:
        raise ValueError(f"Broker address has no host: {broker!r}")
    try:
        port = parts.port
    except ValueError as exc:
        raise ValueError(f"Invalid broker port in {broker!r}") from exc
    if port is None:  # pragma: no cover (normalisation always appends one)
        port = DEFAULT_MQTT_PORT

    return BrokerAddress(
        scheme=scheme,
        host=parts.hostname,
        port=port,
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
    )


def get_default_config() -> dict[str, Any]:
    """Provide the default values for the options a user usually overrides."""
    return {
        "host": DEFAULT_SOURCE_HOST,
        "port": DEFAULT_SOURCE_PORT,
        "broker": DEFAULT_BROKER,
        "topic": DEFAULT_TOPIC,
        "qos": DEFAULT_QOS,
    }


__all__ = [
    "BrokerAddress",
    "get_default_config",
    "normalize_broker_address",
    "parse_broker_address",
]
