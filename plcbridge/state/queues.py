"""Ordered message buffer used between the frame decoder and the publish pump."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from enum import StrEnum
from typing import Annotated

import msgspec


class OverflowPolicy(StrEnum):
    """What to do when a bounded buffer is full."""

    DROP_OLDEST = "drop-oldest"
    DROP_NEWEST = "drop-newest"
    REJECT = "reject"


class EnqueueEvent(msgspec.Struct):
    """Outcome of a single append."""

    accepted: bool = False
    dropped: str | None = None


def _make_deque() -> deque[str]:
    """Factory for msgspec default_factory to avoid lambdas."""
    return deque()


class MessageBuffer(msgspec.Struct):
    """FIFO of decoded messages awaiting publication.

    ``limit == 0`` means unbounded. Messages handed back by the pump through
    :meth:`requeue` always return to the head, even when that briefly takes
    the buffer one past its limit.
    """

    limit: Annotated[int, msgspec.Meta(ge=0)] = 0
    overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST
    dropped_messages: int = 0
    _queue: deque[str] = msgspec.field(default_factory=_make_deque)

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __iter__(self) -> Iterator[str]:
        return iter(self._queue)

    @property
    def is_full(self) -> bool:
        return self.limit > 0 and len(self._queue) >= self.limit

    def append(self, message: str) -> EnqueueEvent:
        event = EnqueueEvent()
        if self.is_full:
            if self.overflow is OverflowPolicy.REJECT:
                self.dropped_messages += 1
                event.dropped = message
                return event
            if self.overflow is OverflowPolicy.DROP_NEWEST:
                event.dropped = self._queue.pop()
            else:
                event.dropped = self._queue.popleft()
            self.dropped_messages += 1

        self._queue.append(message)
        event.accepted = True
        return event

    def requeue(self, message: str) -> None:
        self._queue.appendleft(message)

    def popleft(self) -> str:
        return self._queue.popleft()

    def clear(self) -> None:
        self._queue.clear()

    def snapshot(self) -> list[str]:
        return list(self._queue)


__all__ = ["EnqueueEvent", "MessageBuffer", "OverflowPolicy"]
