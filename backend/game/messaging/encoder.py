"""
MessagePack framing for the WebSocket protocol.

Every frame in either direction is a single map with a ``type`` key naming
the event.
"""

from typing import Any

import msgpack

# Inbound frames are tiny (room ids, names, a couple of ints); anything
# beyond these limits is rejected before it is materialised.
MAX_BUFFER_LEN = 4 * 1024
MAX_STR_LEN = 1024
MAX_BIN_LEN = 256
MAX_ARRAY_LEN = 64
MAX_MAP_LEN = 32
MAX_EXT_LEN = 256


class DecodeError(Exception):
    """Error raised when an inbound frame cannot be decoded."""


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode one inbound frame.

    Raises DecodeError if the frame is not valid MessagePack, is not a map
    with a string ``type``, or exceeds the size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")
    if not isinstance(result.get("type"), str):
        raise DecodeError("message has no string 'type' field")

    return result
