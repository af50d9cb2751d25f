"""
Engine package.

Public entry points of the normalization engine. Everything else in this
folder is an internal stage of the pipeline.
"""

from xen_telemetry.engine.pipeline import EngineConfig, NormalizationEngine

__all__ = ["EngineConfig", "NormalizationEngine"]
