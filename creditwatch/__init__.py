"""Portfolio alert detection and lifecycle management."""

__version__ = "0.1.0"
