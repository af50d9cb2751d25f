"""
Core types.

This file defines the shared data structures used across the engine.

Important design choice
We keep these types transport neutral.
Inventory records are normalized from XAPI objects but never carry raw XAPI
records, and opaque refs are only kept as a translation aid.

Lifecycle
EntityRecord lives inside the InventoryIndex and survives across cycles.
Everything else in this file is created for one polling cycle and discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

UNNAMED_LABEL = "Unnamed"

# Pool name for hosts loaded without pool attribution, for example from a static file.
DEFAULT_POOL = "default"

# entity uuid -> namespace path -> value
MetricSet = Dict[str, Dict[str, float]]


class EntityType(str, Enum):
    """
    Monitored entity types.

    host and vm own counter samples.
    network, vif, pif and sr only provide labels.
    """

    host = "host"
    vm = "vm"
    network = "network"
    vif = "vif"
    pif = "pif"
    sr = "sr"


class SampleMode(str, Enum):
    """Consolidation function of an rrd sample."""

    average = "AVERAGE"
    min = "MIN"
    max = "MAX"


class AnomalyKind(str, Enum):
    """
    Anomaly classification.

    decode_error
      Malformed key or value, the sample was skipped.

    unknown_entity
      Sample owned by an entity absent from the index or resident elsewhere.

    label_miss
      A label lookup failed and the fallback label was used.

    computation_skip
      A derived metric precondition was not met, the metric was omitted.
    """

    decode_error = "decode_error"
    unknown_entity = "unknown_entity"
    label_miss = "label_miss"
    computation_skip = "computation_skip"


@dataclass(frozen=True)
class EntityRecord:
    """
    A normalized inventory entity.

    parent
    Residency host for a vm, owning vm for a vif, owning host for a pif.

    device
    Device name for vif and pif records, for example 0 or eth1.

    network
    Network uuid for vif and pif records.

    address
    Management address for host records.

    pool
    Name of the pool a host was loaded from. Selects the session used to poll it.

    refs
    Opaque refs that resolved to this uuid. Unstable across sessions.
    """

    uuid: str
    type: EntityType
    label: str
    parent: Optional[str] = None
    device: Optional[str] = None
    network: Optional[str] = None
    address: Optional[str] = None
    pool: Optional[str] = None
    refs: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class RawSample:
    """One counter reading as delivered by the sample source."""

    encoded_key: str
    value: float | str


@dataclass(frozen=True)
class DecodedKey:
    """
    Parsed form of an encoded sample key.

    Example key
    AVERAGE:vm:0b1c...:vif_0_rx
    """

    mode: SampleMode
    entity_type: EntityType
    entity_id: str
    path_segments: Tuple[str, ...]

    def segment(self, index: int) -> Optional[str]:
        """Return a path segment or None when the path is shorter."""
        if index < len(self.path_segments):
            return self.path_segments[index]
        return None


@dataclass(frozen=True)
class ParsedMetric:
    """
    A normalized metric for one entity.

    path is the slash delimited namespace, unit is rendered as a bracketed suffix.
    Metrics passed through from unrecognized counters have no unit.
    """

    path: str
    unit: str
    value: float

    @property
    def name(self) -> str:
        if not self.unit:
            return self.path
        return f"{self.path}[{self.unit}]"


@dataclass(frozen=True)
class Anomaly:
    """Something the engine noticed and tolerated while normalizing a batch."""

    kind: AnomalyKind
    key: str
    detail: str


@dataclass
class CycleResult:
    """
    Engine output for one owner host batch.

    metrics
    MetricSet with prefixed namespace paths.

    entity_types
    Type of every entity present in metrics. The publisher falls back to it
    for naming when an entity has left the inventory.

    anomalies
    Every tolerated problem, in the order it was seen.
    """

    owner: str
    metrics: MetricSet = field(default_factory=dict)
    entity_types: Dict[str, EntityType] = field(default_factory=dict)
    anomalies: List[Anomaly] = field(default_factory=list)

    def count(self, kind: AnomalyKind) -> int:
        return sum(1 for a in self.anomalies if a.kind == kind)
