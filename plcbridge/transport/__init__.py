"""Transport abstractions (TCP source, MQTT broker) for the PLC MQTT bridge."""

from .mqtt import BrokerConnection, BrokerHandler, PublishError
from .source import SourceConnection, SourceHandler

__all__ = [
    "BrokerConnection",
    "BrokerHandler",
    "PublishError",
    "SourceConnection",
    "SourceHandler",
]
