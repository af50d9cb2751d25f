"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
KeyDecodeError skips one sample and the batch continues.
SampleSourceError skips one host for the current cycle.
PublishFailed drops the cycle output after retries are exhausted.

Nothing inside the normalization engine is fatal. Anomalies found while
normalizing a batch are reported as Anomaly records, not raised.
"""


class TelemetryError(Exception):
    """Base class for all telemetry exceptions."""


class KeyDecodeError(TelemetryError):
    """Raised when an encoded sample key or its value cannot be decoded."""


class InventoryInvalid(TelemetryError):
    """Raised when an inventory payload cannot be normalized into an index."""


class SampleSourceError(TelemetryError):
    """Raised when a host sample dump cannot be fetched or parsed."""


class TransportError(TelemetryError):
    """Raised when an http request fails before a response is received."""


class PublishFailed(TelemetryError):
    """Raised when the sink rejects a payload or every delivery attempt fails."""
