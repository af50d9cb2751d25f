"""
Inventory plugin interfaces.

Goal
Provide pluggable inventory loading so the runner is source agnostic.

Inventory is normalized into an immutable InventoryIndex of EntityRecord objects.

We keep the interface narrow so it is easy to mock in tests.
"""

from __future__ import annotations

from typing import Protocol

from xen_telemetry.inventory.index import InventoryIndex


class InventoryPlugin(Protocol):
    """
    Inventory plugin interface.

    load returns a fully populated InventoryIndex snapshot.
    """

    def load(self) -> InventoryIndex:
        """Load inventory into an InventoryIndex."""
