"""Deterministic cache keys for dataset queries."""

import hashlib
from typing import Mapping, Optional, Union

from lifeline_shared.geo.bbox import format_number

Scalar = Optional[Union[str, int, float, bool]]


def _render(value: Scalar) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    return str(value)


def hash_key(parts: Mapping[str, Scalar]) -> str:
    """
    SHA-256 fingerprint of a parameter set.

    Keys are sorted and joined as ``k=v`` pairs with ``|`` so that two
    mappings with the same items always hash identically regardless of
    insertion order. ``None`` renders as an empty value.
    """
    normalized = "|".join(f"{k}={_render(parts[k])}" for k in sorted(parts))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def cache_key(dataset: str, parts: Mapping[str, Scalar]) -> str:
    """Namespaced key: ``"{dataset}:{hash}"``."""
    return f"{dataset}:{hash_key(parts)}"
