"""Stream framing for data arriving from the TCP source.

Two framings are supported, selected once at startup:

Binary (default)::

    ... 0x02 <payload bytes> 0x03 ...

    The payload is everything between the first STX preceding an ETX and
    that ETX. Each byte maps to one character (latin-1); no multi-byte
    decoding takes place. An ETX without a preceding STX is a malformed
    frame and is dropped without further notice.

Text::

    <payload>\\n

    Trailing carriage returns are stripped and empty lines are ignored.

The decode helpers append the chunk to the caller's accumulator and leave
only undelimited trailing data behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Final

import msgspec

if TYPE_CHECKING:
    from ..state.context import LinkState

logger = logging.getLogger("plcbridge.framing")

STX: Final[int] = 0x02
ETX: Final[int] = 0x03
LINE_FEED: Final[bytes] = b"\n"
CARRIAGE_RETURN: Final[bytes] = b"\r"
BINARY_PAYLOAD_ENCODING: Final[str] = "latin-1"


class FramingMode(StrEnum):
    BINARY = "binary"
    TEXT = "text"


class DecodeResult(msgspec.Struct):
    """Messages extracted from one decode pass."""

    messages: list[str] = msgspec.field(default_factory=list)
    malformed: int = 0
    empty: int = 0


def decode_binary(accumulator: bytearray, chunk: bytes) -> DecodeResult:
    """Append *chunk* and extract every complete STX/ETX frame."""
    accumulator.extend(chunk)
    result = DecodeResult()
    consumed = 0

    while True:
        end = accumulator.find(ETX, consumed)
        if end < 0:
            break
        start = accumulator.find(STX, consumed, end)
        if start >= 0:
            payload = bytes(accumulator[start + 1 : end])
            result.messages.append(payload.decode(BINARY_PAYLOAD_ENCODING))
        else:
            result.malformed += 1
        consumed = end + 1

    if consumed:
        del accumulator[:consumed]
    return result


def decode_text(
    accumulator: bytearray,
    chunk: bytes,
    encoding: str = "utf-8",
) -> DecodeResult:
    """Append *chunk* and extract every newline terminated line."""
    accumulator.extend(chunk)
    result = DecodeResult()
    consumed = 0

    while True:
        end = accumulator.find(LINE_FEED, consumed)
        if end < 0:
            break
        line = bytes(accumulator[consumed:end]).rstrip(CARRIAGE_RETURN)
        consumed = end + 1
        if not line:
            result.empty += 1
            continue
        result.messages.append(line.decode(encoding, errors="replace"))

    if consumed:
        del accumulator[:consumed]
    return result


class FrameDecoder:
    """Feed source chunks through the configured framing into the link state.

    *on_backlog* is called once per chunk when messages are waiting and a
    broker handle exists; it must not block.
    """

    def __init__(
        self,
        state: LinkState,
        mode: FramingMode = FramingMode.BINARY,
        *,
        encoding: str = "utf-8",
        on_backlog: Callable[[], None] | None = None,
    ) -> None:
        self.state = state
        self.mode = FramingMode(mode)
        self.encoding = encoding
        self.on_backlog = on_backlog

    def feed(self, chunk: bytes) -> list[str]:
        state = self.state
        if self.mode is FramingMode.TEXT:
            result = decode_text(state.text_accumulator, chunk, self.encoding)
        else:
            result = decode_binary(state.raw_accumulator, chunk)

        if result.malformed:
            state.frames_malformed += result.malformed
            logger.debug("Discarded %d frame(s) without start marker", result.malformed)
        state.empty_lines_dropped += result.empty

        for message in result.messages:
            event = state.pending.append(message)
            if event.dropped is not None:
                logger.warning(
                    "Message buffer full (%d); dropped %s message %r",
                    state.pending.limit,
                    "incoming" if not event.accepted else "queued",
                    event.dropped,
                )
        state.frames_decoded += len(result.messages)

        if state.pending and state.broker is not None and self.on_backlog is not None:
            self.on_backlog()
        return result.messages


__all__ = [
    "DecodeResult",
    "FrameDecoder",
    "FramingMode",
    "decode_binary",
    "decode_text",
]
