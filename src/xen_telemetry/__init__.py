"""
xen_telemetry

This package polls XenServer pools for counter telemetry and republishes it as
a normalized, hierarchically named metric set.

We keep modules small and well separated:
core contains shared data structures, errors and the http seam
inventory contains the immutable inventory index and its loaders
engine contains decoding, classification, aggregation and metric set building
sources contains the rrd_updates sample source
publish contains the sink envelope and publisher
agent contains the runner that wires everything into one polling cycle
"""
