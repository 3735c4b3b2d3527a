"""Live network adapter throughput and per-application traffic."""

__version__ = "0.1.0"
