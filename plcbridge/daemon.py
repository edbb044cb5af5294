#!/usr/bin/env python3
"""Async orchestrator for the PLC MQTT bridge daemon.

Architecture:
    main() -> BridgeDaemon -> TaskGroup
        ├── link-supervisor (ConnectionSupervisor heartbeat)
        ├── prometheus-exporter (optional)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import NoReturn

import uvloop

from plcbridge.cli import parse_args, show_configuration
from plcbridge.config.const import SUPERVISOR_EXPORTER_MAX_RESTARTS
from plcbridge.config.logging import configure_logging
from plcbridge.config.settings import RuntimeConfig, load_runtime_config
from plcbridge.metrics import PrometheusExporter
from plcbridge.services.supervisor import ConnectionSupervisor
from plcbridge.services.task_supervisor import SupervisedTaskSpec, supervise_task
from plcbridge.state.context import create_link_state

logger = logging.getLogger("plcbridge.daemon")


class BridgeDaemon:
    """Own the link state and run the supervised top-level tasks.

    Attributes:
        config: Validated runtime configuration.
        state: Link state shared by every component.
        supervisor: Heartbeat driving the source and broker connections.
        exporter: Optional Prometheus exporter.
    """

    def __init__(self, config: RuntimeConfig):
        self.config = config
        self.state = create_link_state(config)
        self.supervisor = ConnectionSupervisor(config, self.state)
        self.exporter: PrometheusExporter | None = None

    def _setup_supervision(self) -> list[SupervisedTaskSpec]:
        specs: list[SupervisedTaskSpec] = [
            SupervisedTaskSpec(
                name="link-supervisor",
                factory=self.supervisor.run,
            ),
        ]

        if self.config.metrics_enabled:
            self.exporter = PrometheusExporter(
                self.state,
                self.config.metrics_host,
                self.config.metrics_port,
            )
            specs.append(
                SupervisedTaskSpec(
                    name="prometheus-exporter",
                    factory=self.exporter.run,
                    max_restarts=SUPERVISOR_EXPORTER_MAX_RESTARTS,
                )
            )
        return specs

    async def run(self) -> None:
        """Main async entry point."""
        supervised_tasks = self._setup_supervision()

        try:
            async with asyncio.TaskGroup() as task_group:
                for spec in supervised_tasks:
                    task_group.create_task(
                        supervise_task(spec, state=self.state),
                        name=f"supervise-{spec.name}",
                    )
        except* asyncio.CancelledError:
            logger.info("Main task cancelled; shutting down.")
        except* Exception as exc_group:
            for group_exc in exc_group.exceptions:
                logger.critical(
                    "Unhandled exception in main task group: %s",
                    group_exc,
                    exc_info=group_exc,
                )
            raise
        finally:
            logger.info(
                "PLC bridge stopped (%d published, %d pending).",
                self.state.messages_published,
                len(self.state.pending),
            )


def main(argv: Sequence[str] | None = None) -> NoReturn:  # pragma: no cover (Entry point wrapper)
    options = parse_args(argv)
    try:
        config = load_runtime_config(options)
    except ValueError as exc:
        print(f"plcbridge: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    if options.pretend:
        show_configuration(config)
        sys.exit(0)

    configure_logging(config)
    logger.info(
        "Starting PLC bridge. Source: %s:%d MQTT: %s:%d",
        config.host,
        config.port,
        config.mqtt_host,
        config.mqtt_port,
    )

    try:
        daemon = BridgeDaemon(config)
        asyncio.run(daemon.run(), loop_factory=uvloop.new_event_loop)
        sys.exit(0)
    except KeyboardInterrupt:
        logger.info("Daemon interrupted by user.")
        sys.exit(0)
    except RuntimeError as exc:
        logger.critical("Startup aborted due to runtime error: %s", exc)
        sys.exit(1)
    except ExceptionGroup as exc_group:
        for group_exc in exc_group.exceptions:
            logger.critical("Fatal error in task group: %s", group_exc, exc_info=group_exc)
        sys.exit(1)
    except OSError as exc:
        logger.critical("System/OS error during daemon execution: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
