"""
XAPI record normalization.

Input is the output of the XAPI get_all_records calls for one pool:
a dict mapping opaque ref to a record dict, per class.

Output is an InventoryIndex where every cross reference is a uuid.
Opaque refs are only valid for the session that produced them, so they are
translated here and never stored as relationships.

Rules
hosts remember the pool they were loaded from
templates and control domains are not monitored and are skipped
vif and pif labels come from their network, Unnamed when the network is unknown
sr records are also indexed by short id, the first group of the uuid
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from xen_telemetry.core.errors import InventoryInvalid
from xen_telemetry.core.types import DEFAULT_POOL, UNNAMED_LABEL, EntityRecord, EntityType
from xen_telemetry.inventory.index import InventoryBuilder, InventoryIndex

logger = logging.getLogger(__name__)

Records = Dict[str, Dict[str, Any]]


@dataclass
class PoolRecords:
    """
    get_all_records payloads of one pool, keyed by opaque ref.

    name identifies the pool and is recorded on its hosts.
    """

    name: str = DEFAULT_POOL
    hosts: Records = field(default_factory=dict)
    vms: Records = field(default_factory=dict)
    networks: Records = field(default_factory=dict)
    vifs: Records = field(default_factory=dict)
    pifs: Records = field(default_factory=dict)
    srs: Records = field(default_factory=dict)


def _require_uuid(ref: str, record: Any, kind: str) -> str:
    if not isinstance(record, dict):
        raise InventoryInvalid(f"{kind} record {ref} must be an object")
    uuid = record.get("uuid")
    if not isinstance(uuid, str) or not uuid:
        raise InventoryInvalid(f"{kind} record {ref} has no uuid")
    return uuid


def _label(record: Dict[str, Any]) -> str:
    return str(record.get("name_label", "") or "")


def _network_label(builder: InventoryBuilder, network_ref: Any) -> tuple[Optional[str], str]:
    net_uuid = builder.uuid_for_ref(str(network_ref)) if network_ref else None
    if net_uuid is None:
        return None, UNNAMED_LABEL
    net = builder.get(net_uuid)
    if net is None:
        return net_uuid, UNNAMED_LABEL
    return net_uuid, net.label


def _add_pool(builder: InventoryBuilder, pool: PoolRecords) -> None:
    for ref, host in pool.hosts.items():
        uuid = _require_uuid(ref, host, "host")
        builder.add(
            EntityRecord(
                uuid=uuid,
                type=EntityType.host,
                label=_label(host),
                address=str(host.get("address", "") or "") or None,
                pool=pool.name,
                refs=frozenset({ref}),
            )
        )

    for ref, vm in pool.vms.items():
        uuid = _require_uuid(ref, vm, "vm")
        if vm.get("is_a_template") or vm.get("is_control_domain"):
            continue
        resident_on = vm.get("resident_on")
        host_uuid = builder.uuid_for_ref(str(resident_on)) if resident_on else None
        builder.add(
            EntityRecord(
                uuid=uuid,
                type=EntityType.vm,
                label=_label(vm),
                parent=host_uuid,
                refs=frozenset({ref}),
            )
        )

    for ref, net in pool.networks.items():
        uuid = _require_uuid(ref, net, "network")
        builder.add(
            EntityRecord(uuid=uuid, type=EntityType.network, label=_label(net), refs=frozenset({ref}))
        )

    for ref, vif in pool.vifs.items():
        uuid = _require_uuid(ref, vif, "vif")
        vm_ref = vif.get("VM")
        vm_uuid = builder.uuid_for_ref(str(vm_ref)) if vm_ref else None
        net_uuid, label = _network_label(builder, vif.get("network"))
        builder.add(
            EntityRecord(
                uuid=uuid,
                type=EntityType.vif,
                label=label,
                parent=vm_uuid,
                device=str(vif.get("device", "")),
                network=net_uuid,
                refs=frozenset({ref}),
            )
        )

    for ref, pif in pool.pifs.items():
        uuid = _require_uuid(ref, pif, "pif")
        host_ref = pif.get("host")
        host_uuid = builder.uuid_for_ref(str(host_ref)) if host_ref else None
        net_uuid, label = _network_label(builder, pif.get("network"))
        builder.add(
            EntityRecord(
                uuid=uuid,
                type=EntityType.pif,
                label=label,
                parent=host_uuid,
                device=str(pif.get("device", "")),
                network=net_uuid,
                refs=frozenset({ref}),
            )
        )

    for ref, sr in pool.srs.items():
        uuid = _require_uuid(ref, sr, "sr")
        builder.add(
            EntityRecord(uuid=uuid, type=EntityType.sr, label=_label(sr), refs=frozenset({ref}))
        )


def build_index_from_records(pools: Iterable[PoolRecords]) -> InventoryIndex:
    """
    Normalize the record dumps of one or more pools into one snapshot.

    Raises InventoryInvalid when a record is not an object or has no uuid.
    """
    builder = InventoryBuilder()
    pool_count = 0
    for pool in pools:
        _add_pool(builder, pool)
        pool_count += 1

    index = builder.freeze()
    logger.info(
        "inventory built: pools=%d hosts=%d vms=%d entities=%d",
        pool_count,
        len(index.of_type(EntityType.host)),
        len(index.of_type(EntityType.vm)),
        len(index),
    )
    return index
