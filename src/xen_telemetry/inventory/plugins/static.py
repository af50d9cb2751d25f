"""
Static inventory plugin.

Reads a local json file that contains a list of normalized entities.
This is useful for dev, tests, and replaying an inventory captured with
inventory_to_json.

Schema example
{
  "entities": [
    {"uuid": "h1", "type": "host", "label": "xen01", "address": "10.0.0.11"},
    {"uuid": "vm1", "type": "vm", "label": "web", "parent": "h1"},
    {"uuid": "vif1", "type": "vif", "label": "Pool-wide network", "parent": "vm1", "device": "0"},
    {"uuid": "6f1a2b3c-0000-0000-0000-000000000000", "type": "sr", "label": "Local storage"}
  ]
}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from xen_telemetry.core.errors import InventoryInvalid
from xen_telemetry.core.types import EntityRecord, EntityType
from xen_telemetry.inventory.index import InventoryBuilder, InventoryIndex
from xen_telemetry.inventory.plugins.base import InventoryPlugin


def _parse_type(raw: str) -> EntityType:
    """Convert a type string to EntityType."""
    try:
        return EntityType(raw)
    except ValueError as exc:
        raise InventoryInvalid(f"unsupported entity type: {raw}") from exc


def _opt_str(obj: dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _entity_from_dict(obj: dict[str, Any]) -> EntityRecord:
    """Convert an entity dict into an EntityRecord."""
    uuid = obj.get("uuid")
    if not isinstance(uuid, str) or not uuid:
        raise InventoryInvalid("entity without uuid")

    refs_obj = obj.get("refs", []) or []
    refs = frozenset(str(r) for r in refs_obj) if isinstance(refs_obj, list) else frozenset()

    return EntityRecord(
        uuid=uuid,
        type=_parse_type(str(obj.get("type", ""))),
        label=str(obj.get("label", "") or ""),
        parent=_opt_str(obj, "parent"),
        device=_opt_str(obj, "device"),
        network=_opt_str(obj, "network"),
        address=_opt_str(obj, "address"),
        pool=_opt_str(obj, "pool"),
        refs=refs,
    )


@dataclass(frozen=True)
class StaticInventoryPlugin(InventoryPlugin):
    """
    Load inventory from a local json file.

    path points to a json file that matches the schema described in the module docstring.
    """

    path: Path

    def load(self) -> InventoryIndex:
        data = json.loads(self.path.read_text(encoding="utf-8"))
        entities = data.get("entities", []) if isinstance(data, dict) else []

        builder = InventoryBuilder()
        if isinstance(entities, list):
            for obj in entities:
                if isinstance(obj, dict):
                    builder.add(_entity_from_dict(obj))

        return builder.freeze()
