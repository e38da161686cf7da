"""Live telemetry channel and status presentation for inspection robots."""

__version__ = "0.1.0"
