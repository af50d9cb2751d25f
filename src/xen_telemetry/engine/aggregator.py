"""
Aggregator.

Some categories are naturally multi valued within one cycle, for example
throughput per virtual interface or load per core. Handlers push those values
into per entity buckets and the aggregator derives the totals once every
sample of the batch has been classified.

Derived metrics
network/total/rx and tx        sum of the vif buckets, vm only
cpu/cpuAverage/Average CPU     mean of the per core bucket, vm only
memory/used                    total minus free, when both are present and non negative
memory_percent/used            used over total, when used exists and total is non zero

Hosts report their cpu average directly, so it is not recomputed.
A derived metric whose precondition fails is omitted, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from xen_telemetry.core.types import EntityType, ParsedMetric
from xen_telemetry.engine import units
from xen_telemetry.engine.classifier import BUCKET_CPU, BUCKET_NETWORK_RX, BUCKET_NETWORK_TX

MEMORY_TOTAL = "memory/total[bytes]"
MEMORY_FREE = "memory/free[bytes]"


@dataclass
class AggregationBuckets:
    """Per entity, per bucket values collected within one cycle."""

    _values: Dict[str, Dict[str, List[float]]] = field(default_factory=dict)

    def push(self, entity_id: str, bucket: str, value: float) -> None:
        self._values.setdefault(entity_id, {}).setdefault(bucket, []).append(value)

    def values(self, entity_id: str, bucket: str) -> List[float]:
        return list(self._values.get(entity_id, {}).get(bucket, []))


@dataclass
class Derivation:
    """
    Derived metrics for one entity.

    skipped holds a human readable reason per omitted derived metric whose
    inputs were partially present.
    """

    metrics: List[ParsedMetric] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _derive_memory(current: Mapping[str, float], out: Derivation) -> None:
    total = current.get(MEMORY_TOTAL)
    free = current.get(MEMORY_FREE)

    if total is None and free is None:
        return
    if total is None or free is None:
        missing = "total" if total is None else "free"
        out.skipped.append(f"memory/used needs total and free, {missing} missing")
        return
    if total < 0 or free < 0:
        out.skipped.append(f"memory/used needs non negative inputs, total={total} free={free}")
        return

    used = total - free
    out.metrics.append(ParsedMetric(path="memory/used", unit="bytes", value=used))

    if total == 0:
        out.skipped.append("memory_percent/used needs a non zero total")
        return
    out.metrics.append(
        ParsedMetric(path="memory_percent/used", unit="%", value=used / total * 100)
    )


def derive_metrics(
    entity_id: str,
    entity_type: EntityType,
    current: Mapping[str, float],
    buckets: AggregationBuckets,
) -> Derivation:
    """
    Compute derived metrics for one entity.

    current maps metric name, for example memory/total[bytes], to its value
    as classified in this cycle.
    """
    out = Derivation()
    _derive_memory(current, out)

    if entity_type != EntityType.vm:
        return out

    rx = buckets.values(entity_id, BUCKET_NETWORK_RX)
    if rx:
        out.metrics.append(
            ParsedMetric(path="network/total/rx", unit="bits/second", value=units.rounded_sum(rx))
        )

    tx = buckets.values(entity_id, BUCKET_NETWORK_TX)
    if tx:
        out.metrics.append(
            ParsedMetric(path="network/total/tx", unit="bits/second", value=units.rounded_sum(tx))
        )

    cpu = buckets.values(entity_id, BUCKET_CPU)
    if cpu:
        out.metrics.append(
            ParsedMetric(
                path="cpu/cpuAverage/Average CPU", unit="%", value=units.rounded_mean(cpu)
            )
        )

    return out
