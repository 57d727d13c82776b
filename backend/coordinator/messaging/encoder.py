"""
JSON encoder/decoder for WebSocket text frames.

Every frame is a single JSON object. Decoding enforces a size limit and
rejects anything that is not an object.
"""

import json
from typing import Any

# Text frames above this size are rejected before parsing.
MAX_FRAME_BYTES = 8 * 1024


class DecodeError(Exception):
    """Error raised when a frame is not a valid JSON object."""


def encode(data: dict[str, Any]) -> str:
    """
    Encode a dict to a compact JSON string.
    """
    return json.dumps(data, separators=(",", ":"), allow_nan=False)


def decode(raw: str) -> dict[str, Any]:
    """
    Decode a JSON text frame to a dict.

    Raises DecodeError if the frame is too large, not valid JSON (including
    nesting too deep to parse), or not an object.
    """
    byte_len = len(raw.encode("utf-8"))
    if byte_len > MAX_FRAME_BYTES:
        raise DecodeError(f"Message too large ({byte_len} bytes, max {MAX_FRAME_BYTES})")
    try:
        result = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise DecodeError("Invalid JSON format") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected JSON object, got {type(result).__name__}")

    return result
