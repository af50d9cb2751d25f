"""
XAPI inventory plugin.

Loads inventory from one or more pool masters through an XapiClient.

Design
Connecting and authenticating against a pool master is not part of this
package. The plugin receives already connected clients and only issues the
read only get_all_records calls, then hands the payloads to the record
normalizer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from xen_telemetry.core.types import DEFAULT_POOL
from xen_telemetry.inventory.index import InventoryIndex
from xen_telemetry.inventory.plugins.base import InventoryPlugin
from xen_telemetry.inventory.xapi_records import PoolRecords, build_index_from_records


class XapiClient(Protocol):
    """Connected XAPI session for one pool master."""

    def get_all_records(self, xapi_class: str) -> dict[str, dict[str, Any]]:
        """Return the <class>.get_all_records payload keyed by opaque ref."""


def fetch_pool_records(client: XapiClient, name: str = DEFAULT_POOL) -> PoolRecords:
    """Issue the six record calls needed for one pool."""
    return PoolRecords(
        name=name,
        hosts=client.get_all_records("host"),
        vms=client.get_all_records("VM"),
        networks=client.get_all_records("network"),
        vifs=client.get_all_records("VIF"),
        pifs=client.get_all_records("PIF"),
        srs=client.get_all_records("SR"),
    )


@dataclass(frozen=True)
class XapiInventoryPlugin(InventoryPlugin):
    """
    Load inventory from every configured pool.

    clients maps a pool name to the connected client of its master. The name
    is recorded on the pool's hosts so the sample source can pick the
    matching session.

    A failing pool raises, so the runner keeps its previous snapshot rather
    than swapping in a partial one.
    """

    clients: Mapping[str, XapiClient]

    def load(self) -> InventoryIndex:
        pools = [fetch_pool_records(client, name) for name, client in self.clients.items()]
        return build_index_from_records(pools)
