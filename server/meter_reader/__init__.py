"""Flow meter reading recognition backend."""

__version__ = "1.0.0"
