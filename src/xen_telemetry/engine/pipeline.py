"""
Normalization engine.

This engine turns one owner host's raw sample batch into a CycleResult:
decode, filter, classify, aggregate, build.

Determinism and isolation
The engine holds configuration only. Buckets and the metric set builder are
created per call, so concurrent calls for different hosts never share state
other than the read only inventory snapshot.

Nothing in here is fatal. Bad keys, unknown entities, label misses and
skipped derivations are logged and recorded as anomalies, and the best metric
set obtainable from the input is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from xen_telemetry.core.errors import KeyDecodeError
from xen_telemetry.core.types import Anomaly, AnomalyKind, CycleResult, RawSample
from xen_telemetry.engine.aggregator import AggregationBuckets, derive_metrics
from xen_telemetry.engine.builder import DEFAULT_PREFIX, MetricSetBuilder
from xen_telemetry.engine.classifier import classify
from xen_telemetry.engine.decoder import admit_sample, decode_key, parse_value
from xen_telemetry.inventory.index import InventoryIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine configuration.

    prefix
    Grouping token prepended to every namespace path.
    """

    prefix: str = DEFAULT_PREFIX


class NormalizationEngine:
    """Stateless per cycle transform from raw samples to a MetricSet."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    def process(
        self,
        owner_host: str,
        raw: Mapping[str, float | str],
        index: InventoryIndex,
    ) -> CycleResult:
        """Process an ordered encoded key to value mapping for one host."""
        samples = (RawSample(encoded_key=k, value=v) for k, v in raw.items())
        return self.process_samples(owner_host, samples, index)

    def process_samples(
        self,
        owner_host: str,
        samples: Iterable[RawSample],
        index: InventoryIndex,
    ) -> CycleResult:
        result = CycleResult(owner=owner_host)
        builder = MetricSetBuilder(prefix=self._config.prefix)
        buckets = AggregationBuckets()

        def note(kind: AnomalyKind, key: str, detail: str) -> None:
            logger.debug("%s %s: %s", kind.value, key, detail)
            result.anomalies.append(Anomaly(kind=kind, key=key, detail=detail))

        for sample in samples:
            key = sample.encoded_key
            try:
                decoded = decode_key(key)
                value = parse_value(sample.value)
            except KeyDecodeError as exc:
                note(AnomalyKind.decode_error, key, str(exc))
                continue

            reason = admit_sample(decoded, owner_host, index)
            if reason is not None:
                note(AnomalyKind.unknown_entity, key, reason)
                continue

            outcome = classify(decoded, value, index)
            for miss in outcome.label_misses:
                note(AnomalyKind.label_miss, key, f"no inventory entry for {miss}")

            if outcome.metric is None:
                continue

            builder.add(decoded.entity_id, decoded.entity_type, outcome.metric)
            if outcome.bucket is not None:
                buckets.push(decoded.entity_id, outcome.bucket, outcome.metric.value)

        for entity_id in builder.entities():
            entity_type = builder.entity_type(entity_id)
            derivation = derive_metrics(
                entity_id, entity_type, builder.current(entity_id), buckets
            )
            builder.extend(entity_id, entity_type, derivation.metrics)
            for detail in derivation.skipped:
                note(AnomalyKind.computation_skip, entity_id, detail)

        result.metrics = builder.build()
        result.entity_types = builder.entity_types()

        logger.info(
            "normalized batch for host %s: entities=%d metrics=%d anomalies=%d",
            owner_host,
            len(result.metrics),
            sum(len(m) for m in result.metrics.values()),
            len(result.anomalies),
        )
        return result
