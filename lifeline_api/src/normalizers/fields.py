"""
Declarative field tables for loosely-typed upstream records.

Upstream datasets spell the same attribute many ways (``Store_Name``,
``storename``, ``name``). A ``FieldTable`` lists the candidate keys for each
logical field in priority order; lookups run against a lowercase-keyed view
of the record and the first non-empty value wins.
"""

import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


def lowercase_view(record: Any) -> Dict[str, Any]:
    """Return ``record`` re-keyed by lowercased key, or ``{}`` for non-mappings."""
    if not isinstance(record, Mapping):
        return {}
    view: Dict[str, Any] = {}
    for key, value in record.items():
        view.setdefault(str(key).lower(), value)
    return view


def is_present(value: Any) -> bool:
    """None and empty strings count as absent; everything else is present."""
    if value is None:
        return False
    return len(str(value)) > 0


def first_present(view: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    """First present value among ``candidates`` (already lowercase), else None."""
    for name in candidates:
        value = view.get(name)
        if is_present(value):
            return value
    return None


def to_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings to a finite float, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def split_list(value: Any) -> Optional[list]:
    """A list field as strings, or a comma-separated string split and trimmed."""
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return None


class FieldTable:
    """Ordered candidate keys per logical field."""

    def __init__(self, **fields: Sequence[str]):
        self.fields: Dict[str, Tuple[str, ...]] = {
            name: tuple(candidate.lower() for candidate in candidates)
            for name, candidates in fields.items()
        }

    def get(self, view: Mapping[str, Any], field: str) -> Any:
        return first_present(view, self.fields[field])

    def extract(self, record: Any) -> Dict[str, Any]:
        """Resolve every field of the table against ``record``."""
        view = lowercase_view(record)
        return {name: first_present(view, candidates) for name, candidates in self.fields.items()}
