"""
rrd_updates sample source.

Each host serves its own counters at /rrd_updates. We ask for a window a few
minutes wide so the response always contains a full minute row, and keep only
the most recent row.

Response shape
<xport>
  <meta>
    <legend><entry>AVERAGE:host:<uuid>:cpu0</entry>...</legend>
  </meta>
  <data>
    <row><t>1700000060</t><v>0.0123</v>...</row>   most recent first
  </data>
</xport>
"""

from __future__ import annotations

import logging
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from urllib.parse import urlencode

from xen_telemetry.core.errors import SampleSourceError, TransportError
from xen_telemetry.core.http import HttpClient, UrllibHttpClient
from xen_telemetry.core.types import DEFAULT_POOL, EntityRecord
from xen_telemetry.sources.base import SampleSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RrdSourceConfig:
    """
    rrd_updates request configuration.

    lookback_seconds
    Width of the requested window. Three minutes forces minute rows.

    interval_seconds
    Requested row granularity.
    """

    lookback_seconds: int = 180
    interval_seconds: int = 60
    consolidation: str = "AVERAGE"
    scheme: str = "http"


@dataclass(frozen=True)
class PoolSession:
    """
    Authenticated session of one pool master.

    tz_offset_minutes
    Added to the local clock when the pool clock runs in another timezone.
    """

    session_id: str
    tz_offset_minutes: int = 0


def build_rrd_url(address: str, session: PoolSession, now: float, config: RrdSourceConfig) -> str:
    """Build the rrd_updates url for one host."""
    start = int(now + session.tz_offset_minutes * 60) - config.lookback_seconds
    query = urlencode(
        {
            "session_id": session.session_id,
            "start": start,
            "host": "true",
            "cf": config.consolidation,
            "interval": config.interval_seconds,
        }
    )
    return f"{config.scheme}://{address}/rrd_updates?{query}"


def parse_rrd_updates(xml_text: str) -> Dict[str, str]:
    """
    Pair legend entries with the first data row.

    Raises SampleSourceError when the document is not xml or has no legend.
    A document with a legend but no rows yields an empty mapping.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise SampleSourceError(f"invalid rrd_updates document: {exc}") from exc

    legend = root.find("meta/legend")
    if legend is None:
        raise SampleSourceError("rrd_updates document has no legend")
    columns = [(e.text or "").strip() for e in legend.findall("entry")]

    row = root.find("data/row")
    if row is None:
        return {}
    values = [(v.text or "").strip() for v in row.findall("v")]

    if len(values) != len(columns):
        logger.warning(
            "rrd_updates row has %d values for %d legend entries", len(values), len(columns)
        )

    return dict(zip(columns, values))


class RrdUpdatesSource(SampleSource):
    """
    Fetch samples over http from each host.

    sessions maps a pool name to its authenticated session. Each host is
    polled with the session of the pool it was loaded from, hosts without a
    pool use DEFAULT_POOL. Login is handled by whoever embeds this source.
    """

    def __init__(
        self,
        sessions: Mapping[str, PoolSession],
        config: Optional[RrdSourceConfig] = None,
        http: Optional[HttpClient] = None,
        clock=time.time,
    ) -> None:
        self._sessions = dict(sessions)
        self._config = config or RrdSourceConfig()
        self._http = http or UrllibHttpClient()
        self._clock = clock

    def fetch(self, host: EntityRecord) -> Dict[str, str]:
        if not host.address:
            raise SampleSourceError(f"host {host.uuid} has no address")

        pool = host.pool or DEFAULT_POOL
        session = self._sessions.get(pool)
        if session is None:
            raise SampleSourceError(f"no session for pool {pool} of host {host.uuid}")

        url = build_rrd_url(host.address, session, self._clock(), self._config)
        try:
            resp = self._http.get_text(url, headers={"Accept": "text/xml"})
        except TransportError as exc:
            raise SampleSourceError(f"rrd_updates fetch failed for host {host.uuid}") from exc

        if not resp.ok:
            raise SampleSourceError(f"rrd_updates returned {resp.status} for host {host.uuid}")

        return parse_rrd_updates(resp.body)
