"""Wire framing for the PLC MQTT bridge."""

from .framing import (
    DecodeResult,
    FrameDecoder,
    FramingMode,
    decode_binary,
    decode_text,
)

__all__ = [
    "DecodeResult",
    "FrameDecoder",
    "FramingMode",
    "decode_binary",
    "decode_text",
]
