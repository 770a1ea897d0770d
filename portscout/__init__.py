"""portscout: concurrent TCP port scanner with heuristic service detection."""

__version__ = "0.1.0"
