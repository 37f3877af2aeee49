"""Scale KEDA-driven apps' databases up and down with their workload."""

__version__ = "0.1.0"
