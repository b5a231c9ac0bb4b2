"""Lease Agent: commercial lease request workflow tracking."""

__version__ = "0.1.0"
