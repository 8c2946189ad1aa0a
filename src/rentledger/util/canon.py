from __future__ import annotations

import json
from typing import Any


def canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Stored record sizes are billed byte-for-byte, so the encoding must be stable:
    sorted keys, no whitespace, no coercion of unknown types.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
