"""MessagePack wire codec for websocket frames.

Every frame in either direction is one MessagePack map.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Raised when an inbound frame is not a valid MessagePack map."""


# Inbound limits. Card payloads are opaque, so these bound what a client can
# make the server hold per message.
MAX_BUFFER_LEN = 128 * 1024
MAX_STR_LEN = 16 * 1024
MAX_BIN_LEN = 16 * 1024
MAX_ARRAY_LEN = 512
MAX_MAP_LEN = 128
MAX_EXT_LEN = 1024


def _stringify_keys(obj: object) -> object:
    """Convert integer map keys to strings, recursively.

    Opaque client payloads (hand counts, card fields) may come back from
    model_dump() with integer keys that strict-map clients reject.
    """
    if isinstance(obj, dict):
        return {str(k) if isinstance(k, int) else k: _stringify_keys(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_stringify_keys(item) for item in obj]
    return obj


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(_stringify_keys(data))


def decode(data: bytes) -> dict[str, Any]:
    """Decode one inbound frame.

    Raises DecodeError when the frame is oversized, malformed, or not a map.
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
    return result
