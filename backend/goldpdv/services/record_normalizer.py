"""
Record normalizer: reads backend JSON records whose keys arrive in
inconsistent casings (``quantity_base`` / ``quantityBase`` / ``QUANTITY_BASE``)
or as legacy column names (``cditem``, ``matprima``, ``qtde``).

Every mapper in the service layer goes through these helpers before a value
reaches the costing engines.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

from goldpdv.config import NOTES_MAX_LENGTH

Record = Dict[str, Any]

# Envelope keys the backend has been seen wrapping lists in
ARRAY_ENVELOPE_KEYS: List[str] = [
    "data",
    "items",
    "result",
    "rows",
    "lista",
    "records",
    "content",
    "values",
    "itens",
    "produtos",
]

_MAX_ARRAY_DEPTH = 5


def resolve_key_variants(key: str) -> List[str]:
    base = key.strip()
    variants: List[str] = []
    for candidate in (
        base,
        base.lower(),
        base.upper(),
        base.replace("_", ""),
        base.lower().replace("_", ""),
    ):
        if candidate not in variants:
            variants.append(candidate)
    return variants


def get_value(record: Optional[Record], key: str) -> Any:
    """Return the first present variant of ``key`` (None-valued keys count as present)."""
    if not isinstance(record, dict):
        return None
    for variant in resolve_key_variants(key):
        if variant in record:
            return record[variant]
    return None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed):
        return None
    return parsed


def get_optional_number(record: Optional[Record], keys: Iterable[str]) -> Optional[float]:
    for key in keys:
        parsed = _to_float(get_value(record, key))
        if parsed is not None:
            return parsed
    return None


def get_number(record: Optional[Record], keys: Iterable[str], fallback: float = 0.0) -> float:
    parsed = get_optional_number(record, keys)
    return fallback if parsed is None else parsed


def get_string(record: Optional[Record], keys: Iterable[str], fallback: str = "") -> str:
    for key in keys:
        value = get_value(record, key)
        if value is not None and str(value).strip() != "":
            return str(value)
    return fallback


def get_optional_string(record: Optional[Record], keys: Iterable[str]) -> Optional[str]:
    value = get_string(record, keys, "")
    return value or None


def get_flag(record: Optional[Record], keys: Iterable[str]) -> bool:
    """Legacy S/N columns; anything but "S" is False."""
    raw = "".join(get_string(record, keys, "").split()).upper()
    return raw == "S"


def sanitize_number(value: Any) -> float:
    """Non-finite or unparsable values become 0.0."""
    parsed = _to_float(value)
    if parsed is None or math.isinf(parsed):
        return 0.0
    return parsed


def sanitize_notes(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value[:NOTES_MAX_LENGTH]


def _find_array(value: Any, depth: int = 0) -> Optional[list]:
    if depth > _MAX_ARRAY_DEPTH:
        return None
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in ARRAY_ENVELOPE_KEYS:
            if value.get(key) is not None:
                candidate = _find_array(value[key], depth + 1)
                if candidate is not None:
                    return candidate
        for nested in value.values():
            candidate = _find_array(nested, depth + 1)
            if candidate is not None:
                return candidate
    return None


def extract_array(payload: Any) -> list:
    """First list found in ``payload``, searching envelope keys before other values."""
    found = _find_array(payload)
    return found if found is not None else []


def extract_records(payload: Any) -> List[Record]:
    return [item for item in extract_array(payload) if isinstance(item, dict)]
