"""Telemetry collector components: metric model, Carbon receiver, counters and pod-tagging configuration."""

__version__ = "0.1.0"