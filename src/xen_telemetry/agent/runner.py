"""
Agent runner.

Purpose
On each call:
- refresh_inventory loads a new inventory snapshot
- run_cycle fetches every host's samples, normalizes them and publishes

This is the composition layer of the system.
It wires inventory plugin, sample source, engine and publisher.

Core engine remains pure.
Runner handles failures per host and per publish so one bad host never
costs the rest of the cycle.

Scheduling is left to the embedding application. The observed cadence is one
cycle every 60 seconds and an inventory refresh every 600 seconds.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from xen_telemetry.core.errors import PublishFailed, SampleSourceError
from xen_telemetry.core.types import CycleResult, EntityRecord
from xen_telemetry.engine.pipeline import NormalizationEngine
from xen_telemetry.inventory.index import InventoryIndex
from xen_telemetry.inventory.plugins.base import InventoryPlugin
from xen_telemetry.publish.publisher import SinkPublisher
from xen_telemetry.sources.base import SampleSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    """
    Runner configuration.

    max_workers
    Hosts fetched and normalized in parallel. 1 keeps the cycle sequential.

    publish
    When False the cycle only normalizes, useful for dry runs.
    """

    max_workers: int = 1
    publish: bool = True


@dataclass
class CycleSummary:
    """
    Outcome of one polling cycle.

    results
    One CycleResult per host that was fetched successfully.

    failed_hosts
    Uuids of hosts whose samples could not be fetched.

    published
    True when the sink accepted the envelope.
    """

    results: List[CycleResult] = field(default_factory=list)
    failed_hosts: List[str] = field(default_factory=list)
    published: bool = False

    @property
    def anomaly_count(self) -> int:
        return sum(len(r.anomalies) for r in self.results)


class TelemetryRunner:
    """
    Top level polling loop body.

    This is not the normalization engine.
    This is the runtime wiring around it.
    """

    def __init__(
        self,
        inventory_plugin: InventoryPlugin,
        source: SampleSource,
        publisher: SinkPublisher,
        engine: Optional[NormalizationEngine] = None,
        config: Optional[RunnerConfig] = None,
    ) -> None:
        self._config = config or RunnerConfig()
        self._inventory_plugin = inventory_plugin
        self._source = source
        self._publisher = publisher
        self._engine = engine or NormalizationEngine()
        self._lock = threading.Lock()
        self._index = InventoryIndex()

    @property
    def index(self) -> InventoryIndex:
        with self._lock:
            return self._index

    def refresh_inventory(self) -> InventoryIndex:
        """
        Load a new snapshot and swap it in.

        Cycles already running keep the snapshot they started with.
        If loading fails the exception propagates and the old snapshot stays.
        """
        index = self._inventory_plugin.load()
        with self._lock:
            self._index = index
        logger.info("inventory refreshed: %d entities", len(index))
        return index

    def _process_host(self, host: EntityRecord, index: InventoryIndex) -> Optional[CycleResult]:
        try:
            raw = self._source.fetch(host)
        except SampleSourceError as exc:
            logger.warning("skipping host %s (%s): %s", host.label, host.uuid, exc)
            return None
        return self._engine.process(host.uuid, raw, index)

    def run_cycle(self) -> CycleSummary:
        """
        Execute one polling cycle.

        Steps
        1) capture the current inventory snapshot
        2) fetch and normalize every host batch in isolation
        3) publish all results in one envelope
        """
        index = self.index
        hosts = index.hosts()
        summary = CycleSummary()

        if self._config.max_workers > 1 and len(hosts) > 1:
            with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
                outcomes = list(pool.map(lambda h: self._process_host(h, index), hosts))
        else:
            outcomes = [self._process_host(h, index) for h in hosts]

        for host, result in zip(hosts, outcomes):
            if result is None:
                summary.failed_hosts.append(host.uuid)
            else:
                summary.results.append(result)

        if self._config.publish and summary.results:
            try:
                summary.published = self._publisher.publish(summary.results, index) is not None
            except PublishFailed:
                logger.exception("publish failed, dropping cycle output")

        logger.info(
            "cycle done: hosts=%d failed=%d anomalies=%d published=%s",
            len(hosts),
            len(summary.failed_hosts),
            summary.anomaly_count,
            summary.published,
        )
        return summary
