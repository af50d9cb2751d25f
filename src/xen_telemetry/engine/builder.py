"""
Metric set builder.

Collects ParsedMetrics per entity and flattens them into a MetricSet.
Every namespace path is prefixed with a grouping token so the sink can tell
these metrics apart from other sources.

The builder performs no I/O. build can be called repeatedly and always
returns fresh dicts.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from xen_telemetry.core.types import EntityType, MetricSet, ParsedMetric

DEFAULT_PREFIX = "Component/"


class MetricSetBuilder:
    """
    Per cycle accumulator.

    A later metric with the same name replaces the earlier value, the first
    insertion position is kept.
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self._prefix = prefix
        self._metrics: Dict[str, Dict[str, float]] = {}
        self._types: Dict[str, EntityType] = {}

    def add(self, entity_id: str, entity_type: EntityType, metric: ParsedMetric) -> None:
        self._types.setdefault(entity_id, entity_type)
        self._metrics.setdefault(entity_id, {})[metric.name] = metric.value

    def extend(self, entity_id: str, entity_type: EntityType, metrics: List[ParsedMetric]) -> None:
        for metric in metrics:
            self.add(entity_id, entity_type, metric)

    def current(self, entity_id: str) -> Mapping[str, float]:
        """Unprefixed view of one entity, used by the aggregator."""
        return dict(self._metrics.get(entity_id, {}))

    def entities(self) -> List[str]:
        return list(self._metrics.keys())

    def entity_type(self, entity_id: str) -> EntityType:
        return self._types[entity_id]

    def entity_types(self) -> Dict[str, EntityType]:
        return dict(self._types)

    def build(self) -> MetricSet:
        return {
            entity_id: {self._prefix + name: value for name, value in metrics.items()}
            for entity_id, metrics in self._metrics.items()
        }
