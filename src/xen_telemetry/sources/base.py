"""
Sample source interfaces.

Goal
Provide pluggable sample retrieval so the runner does not care how a host's
counters are transported.

A source returns the raw, still encoded key to value mapping of the most
recent time bucket. Decoding belongs to the engine.
"""

from __future__ import annotations

from typing import Dict, Protocol

from xen_telemetry.core.types import EntityRecord


class SampleSource(Protocol):
    """
    Sample source interface.

    fetch returns the ordered encoded key to value mapping of the most recent
    row for one host. Failures raise SampleSourceError.
    """

    def fetch(self, host: EntityRecord) -> Dict[str, str]:
        """Fetch the latest sample row for a host."""
