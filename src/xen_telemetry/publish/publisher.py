"""
Sink publisher.

Wraps the cycle's metric sets into one delivery envelope and posts it to the
telemetry backend.

Envelope shape
{
  "agent": {"host": "<this collector>", "version": "1.0.1"},
  "components": [
    {
      "name": "VM: web01",
      "guid": "com.example.xen-hosts",
      "duration": 60,
      "metrics": {"Component/cpu/byCpu/cpu0[%]": 12.5}
    }
  ]
}

Transport
Transport errors and 5xx responses are retried with linear backoff.
Other non 2xx responses are not retried because resending the same payload
cannot succeed.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from xen_telemetry.core.errors import PublishFailed, TransportError
from xen_telemetry.core.http import HttpClient, HttpResponse, UrllibHttpClient
from xen_telemetry.core.types import CycleResult, EntityType
from xen_telemetry.engine.classifier import sanitize_label
from xen_telemetry.inventory.index import InventoryIndex

logger = logging.getLogger(__name__)

DEFAULT_SINK_URL = "https://platform-api.newrelic.com/platform/v1/metrics"

_NAME_PREFIX = {
    EntityType.host: "Host: ",
    EntityType.vm: "VM: ",
}


@dataclass(frozen=True)
class PublisherConfig:
    """
    Publisher configuration.

    agent_host
    Name of the machine running the collector, reported in the envelope.

    guid
    Component guid the sink groups dashboards by.

    duration_seconds
    Window each metric value covers. Matches the polling interval.

    max_attempts and retry_delay_seconds
    Attempt n waits retry_delay_seconds * n before the next one.
    """

    sink_url: str = DEFAULT_SINK_URL
    license_key: str = ""
    agent_host: str = "localhost"
    agent_version: str = "1.0.1"
    guid: str = "com.mobilenations.xen-hosts"
    duration_seconds: int = 60
    max_attempts: int = 3
    retry_delay_seconds: float = 1.0

    @classmethod
    def from_env(cls) -> "PublisherConfig":
        """Read sink settings from the environment, keeping defaults for the rest."""
        return cls(
            sink_url=os.getenv("XEN_TELEMETRY_SINK_URL", DEFAULT_SINK_URL),
            license_key=os.getenv("XEN_TELEMETRY_LICENSE_KEY", ""),
            agent_host=os.getenv("XEN_TELEMETRY_AGENT_HOST", "localhost"),
        )


def component_name(
    entity_id: str,
    index: InventoryIndex,
    entity_type: Optional[EntityType] = None,
) -> str:
    """
    Human readable component name.

    Falls back to the uuid when the entity is no longer indexed, prefixed
    from entity_type when the cycle recorded one.
    """
    rec = index.get(entity_id)
    if rec is None:
        return _NAME_PREFIX.get(entity_type, "") + entity_id
    return _NAME_PREFIX.get(rec.type, "") + sanitize_label(rec.label)


def build_envelope(
    results: Iterable[CycleResult],
    index: InventoryIndex,
    config: PublisherConfig,
) -> dict[str, Any]:
    """Build the delivery envelope, one component per entity with metrics."""
    components: list[dict[str, Any]] = []
    for result in results:
        for entity_id, metrics in result.metrics.items():
            if not metrics:
                continue
            components.append(
                {
                    "name": component_name(entity_id, index, result.entity_types.get(entity_id)),
                    "guid": config.guid,
                    "duration": config.duration_seconds,
                    "metrics": dict(metrics),
                }
            )

    return {
        "agent": {"host": config.agent_host, "version": config.agent_version},
        "components": components,
    }


class SinkPublisher:
    """Deliver envelopes to the sink over http."""

    def __init__(
        self,
        config: Optional[PublisherConfig] = None,
        http: Optional[HttpClient] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or PublisherConfig()
        self._http = http or UrllibHttpClient()
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        return {
            "X-License-Key": self._config.license_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def publish(self, results: Iterable[CycleResult], index: InventoryIndex) -> Optional[HttpResponse]:
        """
        Publish one cycle.

        Returns the sink response, or None when there was nothing to send.
        Raises PublishFailed when the sink rejects the payload or every
        attempt fails.
        """
        envelope = build_envelope(results, index, self._config)
        if not envelope["components"]:
            logger.info("nothing to publish")
            return None

        last_error = ""
        attempts = max(1, self._config.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                resp = self._http.post_json(self._config.sink_url, envelope, self._headers())
            except TransportError as exc:
                last_error = str(exc)
            else:
                if resp.ok:
                    logger.info(
                        "published %d components, status=%d",
                        len(envelope["components"]),
                        resp.status,
                    )
                    return resp
                if resp.status < 500:
                    raise PublishFailed(f"sink rejected payload: {resp.status} {resp.body}")
                last_error = f"sink returned {resp.status}"

            logger.warning("publish attempt %d/%d failed: %s", attempt, attempts, last_error)
            if attempt < attempts:
                self._sleep(self._config.retry_delay_seconds * attempt)

        raise PublishFailed(f"publish failed after {attempts} attempts: {last_error}")
