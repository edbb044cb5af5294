"""Command line interface for the PLC MQTT bridge."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from typing import TextIO

import msgspec

from plcbridge.config.common import get_default_config
from plcbridge.config.const import MQTT_QOS_LEVELS
from plcbridge.config.settings import RuntimeConfig
from plcbridge.state.queues import OverflowPolicy

PROG = "plcbridge"
DESCRIPTION = "Bridge framed messages from a TCP data source to an MQTT topic."


def build_parser() -> argparse.ArgumentParser:
    # -h is the source host, so help lives on -?
    parser = argparse.ArgumentParser(prog=PROG, description=DESCRIPTION, add_help=False)
    defaults = get_default_config()

    source = parser.add_argument_group("data source")
    source.add_argument("-h", "--host", help=f"source host (default: {defaults['host']})")
    source.add_argument("-p", "--port", type=int, help=f"source port (default: {defaults['port']})")
    source.add_argument(
        "-T",
        "--text",
        action="store_true",
        default=None,
        help="newline delimited text framing instead of STX/ETX",
    )
    source.add_argument("--heartbeat", type=float, metavar="SECONDS", help="reconnect check interval")
    source.add_argument("--source-timeout", type=float, metavar="SECONDS", help="idle time before a timeout notice")
    source.add_argument("--connect-timeout", type=float, metavar="SECONDS", help="TCP connect timeout")

    broker = parser.add_argument_group("mqtt broker")
    broker.add_argument("-b", "--broker", help=f"broker address (default: {defaults['broker']})")
    broker.add_argument("-t", "--topic", help=f"topic to publish to (default: {defaults['topic']})")
    broker.add_argument(
        "-q",
        "--qos",
        type=int,
        choices=MQTT_QOS_LEVELS,
        help=f"publish QoS level (default: {defaults['qos']})",
    )
    broker.add_argument("--client-id", help="MQTT client identifier")
    broker.add_argument("--username", help="MQTT user name")
    broker.add_argument("--password", help="MQTT password")
    broker.add_argument("--cafile", help="CA bundle for mqtts:// brokers")
    broker.add_argument(
        "--tls-insecure",
        action="store_true",
        default=None,
        help="skip broker certificate verification",
    )
    broker.add_argument(
        "--broker-retries",
        type=int,
        metavar="N",
        help="reconnect attempts per broker handle (0 retries forever)",
    )

    queue = parser.add_argument_group("message buffer")
    queue.add_argument("--queue-limit", type=int, metavar="N", help="maximum buffered messages (0 is unbounded)")
    queue.add_argument(
        "--overflow",
        choices=[policy.value for policy in OverflowPolicy],
        help="what to drop when the buffer is full",
    )

    output = parser.add_argument_group("output")
    output.add_argument("-Q", "--quiet", action="store_true", default=None, help="only warnings and errors")
    output.add_argument("-v", "--verbose", action="store_true", default=None, help="debug output")
    output.add_argument("-L", "--log", metavar="FILE", help="also write JSON log lines to FILE")
    output.add_argument("--metrics-host", help="Prometheus exporter bind address")
    output.add_argument("--metrics-port", type=int, help="Prometheus exporter port (0 disables it)")

    misc = parser.add_argument_group("misc")
    misc.add_argument(
        "-!",
        "--pretend",
        action="store_true",
        help="print the effective configuration and exit",
    )
    misc.add_argument("-?", "--help", action="help", help="show this help message and exit")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse *argv*; argparse exits with status 2 on malformed values."""
    return build_parser().parse_args(argv)


def show_configuration(config: RuntimeConfig, stream: TextIO | None = None) -> None:
    """Write the effective configuration as formatted JSON."""
    out = stream or sys.stdout
    payload = msgspec.json.encode(config.as_dict())
    out.write(msgspec.json.format(payload, indent=2).decode("utf-8"))
    out.write("\n")


__all__ = ["build_parser", "parse_args", "show_configuration"]
