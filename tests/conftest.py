"""Shared inventory fixtures."""

import pytest

from inventory_fixtures import build_index
from xen_telemetry.inventory.index import InventoryIndex


@pytest.fixture
def index() -> InventoryIndex:
    return build_index()
