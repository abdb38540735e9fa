from __future__ import annotations
import json
from typing import Any
from .constants import MAX_MSG_BYTES, MAX_JSON_DEPTH, MAX_JSON_KEYS


def bounded_json_loads(raw: str | bytes) -> Any:
    """Parse one inbound frame, refusing oversized or deeply nested input.

    The size limit is on the UTF-8 byte length, whatever type the frame
    arrived as.
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
    if len(data) > MAX_MSG_BYTES:
        raise ValueError(f"frame of {len(data)} bytes exceeds {MAX_MSG_BYTES}")

    def limit_keys(pairs):
        if len(pairs) > MAX_JSON_KEYS:
            raise ValueError(f"object with {len(pairs)} keys exceeds {MAX_JSON_KEYS}")
        return dict(pairs)

    parsed = json.loads(data.decode("utf-8"), object_pairs_hook=limit_keys)
    _check_depth(parsed)
    return parsed


def _check_depth(root: Any) -> None:
    pending = [(root, 0)]
    while pending:
        node, depth = pending.pop()
        if depth > MAX_JSON_DEPTH:
            raise ValueError(f"nesting deeper than {MAX_JSON_DEPTH}")
        if isinstance(node, dict):
            pending.extend((child, depth + 1) for child in node.values())
        elif isinstance(node, list):
            pending.extend((child, depth + 1) for child in node)


def json_dumps_canonical(o: Any) -> str:
    # insertion order is kept: the node digests the request exactly as sent
    return json.dumps(o, ensure_ascii=False, separators=(",", ":"))
