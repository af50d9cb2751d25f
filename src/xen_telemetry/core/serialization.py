from __future__ import annotations

from dataclasses import asdict
from typing import Any


def _normalize(obj: Any) -> Any:
    if hasattr(obj, "value"):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_normalize(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(_normalize(v) for v in obj)
    return obj


def to_json_safe_dict(obj: Any) -> dict[str, Any]:
    """
    Convert a dataclass object into a JSON safe dict.

    Enums become their values and sets become sorted lists.
    """
    raw = asdict(obj)
    normalized = _normalize(raw)
    if not isinstance(normalized, dict):
        raise TypeError("expected dict after normalization")
    return normalized


def inventory_to_json(inventory: Any) -> dict[str, Any]:
    """
    InventoryIndex transport shape.

    We only rely on inventory.all returning EntityRecord dataclasses.
    Records are sorted by uuid so dumps are stable.
    """
    entities = [to_json_safe_dict(rec) for rec in inventory.all()]
    entities.sort(key=lambda e: e["uuid"])
    return {"entities": entities}
