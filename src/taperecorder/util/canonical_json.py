from __future__ import annotations

import json
from typing import Any


def canonicalize_json(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: canonicalize_json(obj[key]) for key in sorted(obj)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize_json(item) for item in obj]
    return obj


def canonical_dumps(obj: Any) -> str:
    return json.dumps(
        canonicalize_json(obj),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def to_json_value(obj: Any) -> Any:
    """Return ``obj`` as it reads back after a JSON round-trip.

    Raises TypeError or ValueError when ``obj`` is not JSON serializable.
    """
    return json.loads(json.dumps(obj, ensure_ascii=False))
