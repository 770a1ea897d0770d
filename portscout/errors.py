"""Exception hierarchy shared by the scanner, detector and CLI."""

from __future__ import annotations


class ScanError(Exception):
    """Base class for portscout errors."""


class ServiceDetectionError(ScanError):
    """An active probe could not classify the service behind a port."""


class ResolutionError(ScanError):
    """A target hostname could not be resolved to an address."""
