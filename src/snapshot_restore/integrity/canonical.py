"""
Canonical encoding for manifest objects.

The same manifest always encodes to the same bytes, so its storage key
(the hash of those bytes) is stable.
"""

import json
from typing import Any


def canonical_json(obj: Any) -> bytes:
    """
    Encode an object to canonical JSON bytes.

    Rules:
    - Keys sorted alphabetically
    - No whitespace
    - UTF-8 encoding
    - No NaN or infinity
    """
    json_str = json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    )
    return json_str.encode('utf-8')


def decode_json(data: bytes) -> Any:
    """
    Decode JSON bytes produced by canonical_json (or any valid JSON).

    Raises ValueError on malformed input.
    """
    try:
        return json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Object is not valid JSON: {e}")
