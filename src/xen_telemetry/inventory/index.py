"""
Inventory index.

We keep an immutable in memory snapshot as the normalized view of a pool.
Inventory plugins build a new snapshot on every refresh, the engine only reads it.

Why immutable
Polling cycles may run while a refresh is in progress. A cycle keeps the
snapshot it started with, so readers always see a consistent view.

Lookups return None on a miss. Callers decide on the fallback label.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from xen_telemetry.core.types import EntityRecord, EntityType


def sr_short_id(uuid: str) -> str:
    """Return the first dash separated group of an SR uuid, as used in rrd keys."""
    return uuid.split("-", 1)[0]


@dataclass(frozen=True)
class InventoryIndex:
    """
    Read only entity registry keyed by uuid.

    Secondary maps
    opaque ref to uuid
    (vm uuid, device) to vif record
    (host uuid, device) to pif record
    sr short id to sr record
    """

    _entities: Mapping[str, EntityRecord] = field(default_factory=lambda: MappingProxyType({}))
    _refs: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    _vifs: Mapping[Tuple[str, str], EntityRecord] = field(
        default_factory=lambda: MappingProxyType({})
    )
    _pifs: Mapping[Tuple[str, str], EntityRecord] = field(
        default_factory=lambda: MappingProxyType({})
    )
    _srs_short: Mapping[str, EntityRecord] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, uuid: str) -> Optional[EntityRecord]:
        """Return entity record if present."""
        return self._entities.get(uuid)

    def get_typed(self, uuid: str, entity_type: EntityType) -> Optional[EntityRecord]:
        """Return entity record only when it has the expected type."""
        rec = self._entities.get(uuid)
        if rec is None or rec.type != entity_type:
            return None
        return rec

    def uuid_for_ref(self, ref: str) -> Optional[str]:
        """Translate an opaque ref into a stable uuid."""
        return self._refs.get(ref)

    def residency(self, vm_uuid: str) -> Optional[str]:
        """Return the host uuid a vm is resident on."""
        rec = self.get_typed(vm_uuid, EntityType.vm)
        if rec is None:
            return None
        return rec.parent

    def vif(self, vm_uuid: str, device: str) -> Optional[EntityRecord]:
        return self._vifs.get((vm_uuid, device))

    def pif(self, host_uuid: str, device: str) -> Optional[EntityRecord]:
        return self._pifs.get((host_uuid, device))

    def sr_by_short_id(self, short_id: str) -> Optional[EntityRecord]:
        return self._srs_short.get(short_id)

    def of_type(self, entity_type: EntityType) -> List[EntityRecord]:
        """Return records of one type sorted by uuid. Useful for deterministic outputs."""
        recs = [r for r in self._entities.values() if r.type == entity_type]
        return sorted(recs, key=lambda r: r.uuid)

    def hosts(self) -> List[EntityRecord]:
        return self.of_type(EntityType.host)

    def all(self) -> List[EntityRecord]:
        """Return all records as a list."""
        return list(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)


class InventoryBuilder:
    """
    Mutable staging area for a new InventoryIndex.

    Records are added in any order. freeze resolves the secondary maps once
    all records are known, so a vif may be added before its vm.
    """

    def __init__(self) -> None:
        self._entities: Dict[str, EntityRecord] = {}
        self._refs: Dict[str, str] = {}

    def add(self, rec: EntityRecord) -> None:
        """Add or replace a record and register its opaque refs."""
        self._entities[rec.uuid] = rec
        for ref in rec.refs:
            self._refs[ref] = rec.uuid

    def uuid_for_ref(self, ref: str) -> Optional[str]:
        return self._refs.get(ref)

    def get(self, uuid: str) -> Optional[EntityRecord]:
        return self._entities.get(uuid)

    def freeze(self) -> InventoryIndex:
        """Build the immutable snapshot."""
        vifs: Dict[Tuple[str, str], EntityRecord] = {}
        pifs: Dict[Tuple[str, str], EntityRecord] = {}
        srs_short: Dict[str, EntityRecord] = {}

        for rec in self._entities.values():
            if rec.type == EntityType.vif and rec.parent and rec.device is not None:
                vifs[(rec.parent, rec.device)] = rec
            elif rec.type == EntityType.pif and rec.parent and rec.device is not None:
                pifs[(rec.parent, rec.device)] = rec
            elif rec.type == EntityType.sr:
                srs_short[sr_short_id(rec.uuid)] = rec

        return InventoryIndex(
            _entities=MappingProxyType(dict(self._entities)),
            _refs=MappingProxyType(dict(self._refs)),
            _vifs=MappingProxyType(vifs),
            _pifs=MappingProxyType(pifs),
            _srs_short=MappingProxyType(srs_short),
        )
