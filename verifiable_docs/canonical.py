"""
Canonical Encoder
=================

Deterministic string encoding of JSON-like content so that hashing is
reproducible across processes and implementations.

Rules:
- Objects: keys sorted recursively, compact JSON separators
- Arrays: order preserved
- Numbers / booleans / null: canonical JSON text (30.0 -> "30", 1e21 -> "1e+21")
- Strings: returned unchanged at top level
- Output is NFC-normalized
"""

import json
import math
import unicodedata
from typing import Any, Set

from .exceptions import EncodingError

EXPONENT_THRESHOLD = 1e21


def _normalize(value: Any, path: str, seen: Set[int]) -> Any:
    """Validate a content tree and rebuild it from plain JSON types."""
    if value is None or isinstance(value, bool):
        return value

    if isinstance(value, str):
        return unicodedata.normalize("NFC", value)

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"Non-finite number at {path}: {value}")
        # integral floats below 1e21 print without exponent, as JSON.stringify does
        if value.is_integer() and abs(value) < EXPONENT_THRESHOLD:
            return int(value)
        return value

    if isinstance(value, (dict, list, tuple)):
        marker = id(value)
        if marker in seen:
            raise EncodingError(f"Cyclic structure at {path}")
        seen.add(marker)
        try:
            if isinstance(value, dict):
                result = {}
                for key, item in value.items():
                    if not isinstance(key, str):
                        raise EncodingError(
                            f"Object keys must be strings, got {type(key).__name__} at {path}"
                        )
                    key = unicodedata.normalize("NFC", key)
                    if key in result:
                        raise EncodingError(f"Duplicate key after normalization at {path}: {key}")
                    result[key] = _normalize(item, f"{path}.{key}", seen)
                return result
            return [
                _normalize(item, f"{path}[{index}]", seen)
                for index, item in enumerate(value)
            ]
        finally:
            seen.discard(marker)

    raise EncodingError(f"Unsupported value of type {type(value).__name__} at {path}")


def encode_object_as_str(value: Any) -> str:
    """
    Encode a value as its canonical string

    Args:
        value: dict, list, str, int, float, bool or None

    Returns:
        NFC-normalized canonical string

    Raises:
        EncodingError: unsupported type, non-string key, NaN/inf or cycle
    """
    normalized = _normalize(value, "$", set())

    if isinstance(normalized, str):
        encoded = normalized
    else:
        encoded = json.dumps(
            normalized,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )

    return unicodedata.normalize("NFC", encoded)
