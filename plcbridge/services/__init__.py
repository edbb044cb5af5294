"""Bridging services: publish pump, connection supervisor, task supervision."""

from .pump import PublishPump
from .supervisor import ConnectionSupervisor
from .task_supervisor import SupervisedTaskSpec, supervise_task

__all__ = [
    "ConnectionSupervisor",
    "PublishPump",
    "SupervisedTaskSpec",
    "supervise_task",
]
