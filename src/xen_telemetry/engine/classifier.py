"""
Category classifier and unit normalizer.

One handler per MetricCategory turns a decoded sample into at most one
ParsedMetric, plus an optional value for an aggregation bucket.

Label resolution
Friendly names come from the inventory index. A failed lookup never aborts
classification: the label becomes Unnamed and the miss is reported.
Namespace paths use / as a delimiter, so every / in a label becomes -.

Shapes
A recognized category whose path does not have the expected segments yields
no metric. Some signals are dropped on purpose: host memory reclaimed,
per core frequency and P-state counters, io_errors, Tapdisks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from xen_telemetry.core.types import (
    UNNAMED_LABEL,
    DecodedKey,
    EntityRecord,
    EntityType,
    ParsedMetric,
)
from xen_telemetry.engine import units
from xen_telemetry.engine.categories import MetricCategory, categorize
from xen_telemetry.inventory.index import InventoryIndex

BUCKET_NETWORK_RX = "network_rx"
BUCKET_NETWORK_TX = "network_tx"
BUCKET_CPU = "cpu"

_NETWORK_BUCKETS = {"rx": BUCKET_NETWORK_RX, "tx": BUCKET_NETWORK_TX}


@dataclass
class Classification:
    """
    Handler output.

    metric
    The normalized metric, None when the sample is dropped.

    bucket
    Aggregation bucket the value should also be pushed into.

    label_misses
    Lookups that fell back to Unnamed, for anomaly reporting.
    """

    category: MetricCategory
    metric: Optional[ParsedMetric] = None
    bucket: Optional[str] = None
    label_misses: List[str] = field(default_factory=list)


def sanitize_label(label: str) -> str:
    """Replace path delimiters so a label stays one namespace segment."""
    return label.replace("/", "-")


def _resolve(rec: Optional[EntityRecord], what: str, out: Classification) -> str:
    if rec is None:
        out.label_misses.append(what)
        return UNNAMED_LABEL
    return sanitize_label(rec.label)


def _metric(out: Classification, path: str, unit: str, value: float) -> Classification:
    out.metric = ParsedMetric(path=path, unit=unit, value=value)
    return out


def _classify_vif(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    # vif_<index>_<rx|tx>
    out = Classification(MetricCategory.vif)
    vif_index = decoded.segment(1)
    direction = decoded.segment(2)
    if vif_index is None or direction is None:
        return out

    label = _resolve(
        index.vif(decoded.entity_id, vif_index),
        f"vif {vif_index} of {decoded.entity_id}",
        out,
    )
    out.bucket = _NETWORK_BUCKETS.get(direction)
    return _metric(
        out,
        f"network/eth/{label} (vif{vif_index})/{direction}",
        "bits/second",
        units.bytes_to_bits(value),
    )


def _classify_pif(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    # pif_<device|aggr|lo>_<rx|tx>
    out = Classification(MetricCategory.pif)
    device = decoded.segment(1)
    direction = decoded.segment(2)
    if device is None or direction is None:
        return out

    bits = units.bytes_to_bits(value)
    if device == "aggr":
        return _metric(out, f"network/total/{direction}", "bits/second", bits)
    if device == "lo":
        return _metric(out, f"network/local/{direction}", "bits/second", bits)

    label = _resolve(
        index.pif(decoded.entity_id, device),
        f"pif {device} of {decoded.entity_id}",
        out,
    )
    return _metric(out, f"network/eth/{label} ({device})/{direction}", "bits/second", bits)


def _classify_cpu(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    # cpu_avg, cpu0, CPU7-avg-freq, cpu7-P15
    out = Classification(MetricCategory.cpu)
    head = decoded.path_segments[0]
    percent = units.ratio_to_percent(value)

    if head == "cpu" and decoded.segment(1) == "avg":
        return _metric(out, "cpu/cpuAverage/Average CPU", "%", percent)
    if "-" in head:
        return out
    if len(decoded.path_segments) == 1:
        out.bucket = BUCKET_CPU
        return _metric(out, f"cpu/byCpu/{head}", "%", percent)
    return out


def _sr_label(index: InventoryIndex, short_id: str, out: Classification) -> str:
    return _resolve(index.sr_by_short_id(short_id), f"sr {short_id}", out)


def _throughput_kind(direction: str) -> str:
    return "io_throughput_total" if direction == "total" else "io_throughput"


def _iops_kind(direction: str) -> str:
    return "iops_total" if direction == "total" else "iops"


def _classify_host_disk(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    out = Classification(MetricCategory.host_disk)
    seg = decoded.segment
    head = decoded.path_segments[0]

    if head in ("inflight", "iowait"):
        # inflight_<sr>, iowait_<sr>
        short_id = seg(1)
        if short_id is None:
            return out
        label = _sr_label(index, short_id, out)
        if head == "inflight":
            return _metric(out, f"disks/inflight/{label}", "requests", value)
        return _metric(out, f"disks/iowait/{label}", "second/second", value)

    if head == "iops":
        # iops_<read|write|total>_<sr>
        direction, short_id = seg(1), seg(2)
        if direction is None or short_id is None:
            return out
        label = _sr_label(index, short_id, out)
        return _metric(
            out, f"disks/{_iops_kind(direction)}/{label}/{direction}", "requests/second", value
        )

    if head == "io":
        # io_throughput_<read|write|total>_<sr>; io_errors is dropped
        if seg(1) != "throughput":
            return out
        direction, short_id = seg(2), seg(3)
        if direction is None or short_id is None:
            return out
        label = _sr_label(index, short_id, out)
        return _metric(
            out,
            f"disks/{_throughput_kind(direction)}/{label}/{direction}",
            "bytes/second",
            units.mib_to_bytes(value),
        )

    # read_<sr>, write_<sr>, read_latency_<sr>, write_latency_<sr>
    if seg(1) == "latency":
        short_id = seg(2)
        if short_id is None:
            return out
        label = _sr_label(index, short_id, out)
        return _metric(out, f"disks/latency/{label}/{head}", "ms", units.us_to_ms(value))

    short_id = seg(1)
    if short_id is None:
        return out
    label = _sr_label(index, short_id, out)
    return _metric(out, f"disks/write_read/{label}/{head}", "bytes/second", value)


def _classify_vm_disk(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    # vbd_<device>_<op>[_...]
    out = Classification(MetricCategory.vm_disk)
    seg = decoded.segment
    device, op = seg(1), seg(2)
    if device is None or op is None:
        return out
    device = sanitize_label(device)

    if op == "inflight":
        return _metric(out, f"disks/inflight/{device}", "requests", value)
    if op == "iowait":
        return _metric(out, f"disks/iowait/{device}", "second/second", value)
    if op == "iops":
        direction = seg(3)
        if direction is None:
            return out
        return _metric(
            out, f"disks/{_iops_kind(direction)}/{device}/{direction}", "requests/second", value
        )
    if op == "io":
        direction = seg(4)
        if seg(3) != "throughput" or direction is None:
            return out
        return _metric(
            out,
            f"disks/{_throughput_kind(direction)}/{device}/{direction}",
            "bytes/second",
            units.mib_to_bytes(value),
        )
    if op in ("read", "write"):
        if seg(3) == "latency":
            return _metric(out, f"disks/latency/{device}/{op}", "ms", units.us_to_ms(value))
        return _metric(out, f"disks/write_read/{device}/{op}", "bytes/second", value)
    return out


def _classify_memory(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    out = Classification(MetricCategory.memory)
    sub = decoded.segment(1)

    if decoded.entity_type == EntityType.host:
        # memory_total_kib, memory_free_kib; reclaimed is dropped
        if sub in ("total", "free"):
            return _metric(out, f"memory/{sub}", "bytes", units.kb_to_bytes(value))
        return out

    # vm: memory, memory_internal_free
    if sub is None:
        return _metric(out, "memory/total", "bytes", units.floor_value(value))
    if sub == "internal":
        return _metric(out, "memory/free", "bytes", units.floor_value(value))
    return out


_XAPI_MEMORY = {
    "memory": "usage",
    "free": "free",
    "live": "live",
    "allocation": "allocation",
}


def _classify_xapi(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    out = Classification(MetricCategory.xapi)
    sub = decoded.segment(1)
    if sub == "open":
        return _metric(out, "xapi/open_fds", "fds", value)
    if sub in _XAPI_MEMORY:
        return _metric(out, f"xapi/memory/{_XAPI_MEMORY[sub]}", "bytes", units.kb_to_bytes(value))
    return out


def _classify_pool(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    out = Classification(MetricCategory.pool)
    sub = decoded.segment(1)
    if sub == "task":
        return _metric(out, "pool/tasks", "tasks", value)
    if sub == "session":
        return _metric(out, "pool/session", "sessions", value)
    return out


def _classify_loadavg(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    out = Classification(MetricCategory.loadavg)
    return _metric(out, "loadavg/Load Average", "Load Average", value)


def _classify_tapdisks(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    return Classification(MetricCategory.tapdisks)


def _classify_generic(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    # Unrecognized counters pass through so new platform metrics still reach the sink.
    out = Classification(MetricCategory.generic)
    path = "/".join(s for s in decoded.path_segments if s != "kib")
    if not path:
        return out
    return _metric(out, path, "", value)


Handler = Callable[[DecodedKey, float, InventoryIndex], Classification]

HANDLERS: Dict[MetricCategory, Handler] = {
    MetricCategory.vif: _classify_vif,
    MetricCategory.pif: _classify_pif,
    MetricCategory.cpu: _classify_cpu,
    MetricCategory.host_disk: _classify_host_disk,
    MetricCategory.vm_disk: _classify_vm_disk,
    MetricCategory.memory: _classify_memory,
    MetricCategory.xapi: _classify_xapi,
    MetricCategory.pool: _classify_pool,
    MetricCategory.loadavg: _classify_loadavg,
    MetricCategory.tapdisks: _classify_tapdisks,
    MetricCategory.generic: _classify_generic,
}


def classify(decoded: DecodedKey, value: float, index: InventoryIndex) -> Classification:
    """Categorize a filtered sample and run its handler."""
    return HANDLERS[categorize(decoded)](decoded, value, index)
