"""Canonical JSON serialization for compiled IR output.

Byte-stable output lets a compiled parse_result.json be diffed and checked
into version control.
"""

import json
from typing import Any

from pydantic import BaseModel


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization.

    Rules:
    - UTF-8 encoding
    - Sorted keys
    - Stable separators (",", ":")
    - Pydantic models are dumped in JSON mode first

    Args:
        obj: Python object or pydantic model to serialize

    Returns:
        Canonical JSON string
    """
    if isinstance(obj, BaseModel):
        obj = obj.model_dump(mode="json")
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False  # UTF-8 encoding
    )
