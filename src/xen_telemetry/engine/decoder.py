"""
Key decoder.

An rrd_updates legend entry looks like
AVERAGE:host:<host uuid>:memory_total_kib
AVERAGE:vm:<vm uuid>:vbd_xvda_io_throughput_read

The first three colon separated fields are fixed. The remainder is the metric
path, itself underscore delimited.

Filtering
A sample is only attributed to the owner host of the batch when:
host samples belong to a host present in the index
vm samples belong to a vm present in the index and resident on the owner host

The residency check keeps a vm that migrated mid window from being counted
against both hosts.
"""

from __future__ import annotations

import math
from typing import Optional

from xen_telemetry.core.errors import KeyDecodeError
from xen_telemetry.core.types import DecodedKey, EntityType, SampleMode
from xen_telemetry.inventory.index import InventoryIndex

KEY_DELIMITER = ":"
PATH_DELIMITER = "_"

_SAMPLE_OWNERS = {EntityType.host, EntityType.vm}


def decode_key(encoded_key: str) -> DecodedKey:
    """
    Split an encoded key into typed fields.

    Raises KeyDecodeError when the key has fewer than four fields, an unknown
    mode, an entity type other than host or vm, or an empty metric path.
    """
    parts = encoded_key.split(KEY_DELIMITER, 3)
    if len(parts) < 4:
        raise KeyDecodeError(f"missing metric path in key {encoded_key!r}")

    mode_raw, type_raw, entity_id, metric_path = parts

    try:
        mode = SampleMode(mode_raw)
    except ValueError as exc:
        raise KeyDecodeError(f"unsupported mode {mode_raw!r}") from exc

    try:
        entity_type = EntityType(type_raw)
    except ValueError as exc:
        raise KeyDecodeError(f"unsupported entity type {type_raw!r}") from exc
    if entity_type not in _SAMPLE_OWNERS:
        raise KeyDecodeError(f"entity type {type_raw!r} does not own samples")

    if not entity_id:
        raise KeyDecodeError(f"missing entity id in key {encoded_key!r}")
    if not metric_path:
        raise KeyDecodeError(f"empty metric path in key {encoded_key!r}")

    return DecodedKey(
        mode=mode,
        entity_type=entity_type,
        entity_id=entity_id,
        path_segments=tuple(metric_path.split(PATH_DELIMITER)),
    )


def parse_value(raw: float | str) -> float:
    """
    Convert a sample value to float.

    rrd dumps deliver text such as 1.2340E+02 or NaN. Non finite values carry
    no reading for the window and are rejected.
    """
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise KeyDecodeError(f"value {raw!r} is not numeric") from exc
    if not math.isfinite(value):
        raise KeyDecodeError(f"value {raw!r} is not finite")
    return value


def admit_sample(decoded: DecodedKey, owner_host: str, index: InventoryIndex) -> Optional[str]:
    """
    Decide whether a decoded sample belongs to the batch of owner_host.

    Returns None when admitted, otherwise a short reason.
    """
    if decoded.entity_type == EntityType.vm:
        vm = index.get_typed(decoded.entity_id, EntityType.vm)
        if vm is None:
            return "vm not in inventory"
        if vm.parent != owner_host:
            return f"vm resident on {vm.parent}, not {owner_host}"
        return None

    if index.get_typed(decoded.entity_id, EntityType.host) is None:
        return "host not in inventory"
    return None
