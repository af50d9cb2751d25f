"""
Metric categories.

Every decoded sample maps to exactly one MetricCategory. Rules are evaluated in
CATEGORY_RULES order and the first match wins, so a host sample named read_...
is a host disk signal while the same name on a vm falls through to the
generic category.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Tuple

from xen_telemetry.core.types import DecodedKey, EntityType


class MetricCategory(str, Enum):
    vif = "vif"
    pif = "pif"
    cpu = "cpu"
    host_disk = "host_disk"
    vm_disk = "vm_disk"
    memory = "memory"
    xapi = "xapi"
    pool = "pool"
    loadavg = "loadavg"
    tapdisks = "tapdisks"
    generic = "generic"


HOST_DISK_PREFIXES = frozenset({"iowait", "iops", "io", "write", "read", "inflight"})


def _head(decoded: DecodedKey) -> str:
    return decoded.path_segments[0] if decoded.path_segments else ""


def _is_cpu(decoded: DecodedKey) -> bool:
    return _head(decoded)[:3] in ("cpu", "CPU")


def _is_host_disk(decoded: DecodedKey) -> bool:
    return decoded.entity_type == EntityType.host and _head(decoded) in HOST_DISK_PREFIXES


def _is_vm_disk(decoded: DecodedKey) -> bool:
    return decoded.entity_type == EntityType.vm and _head(decoded) == "vbd"


def _head_is(name: str) -> Callable[[DecodedKey], bool]:
    def match(decoded: DecodedKey) -> bool:
        return _head(decoded) == name

    return match


CATEGORY_RULES: List[Tuple[MetricCategory, Callable[[DecodedKey], bool]]] = [
    (MetricCategory.vif, _head_is("vif")),
    (MetricCategory.pif, _head_is("pif")),
    (MetricCategory.cpu, _is_cpu),
    (MetricCategory.host_disk, _is_host_disk),
    (MetricCategory.vm_disk, _is_vm_disk),
    (MetricCategory.memory, _head_is("memory")),
    (MetricCategory.xapi, _head_is("xapi")),
    (MetricCategory.pool, _head_is("pool")),
    (MetricCategory.loadavg, _head_is("loadavg")),
    (MetricCategory.tapdisks, _head_is("Tapdisks")),
]


def categorize(decoded: DecodedKey) -> MetricCategory:
    """Return the first matching category, generic when nothing matches."""
    for category, match in CATEGORY_RULES:
        if match(decoded):
            return category
    return MetricCategory.generic
