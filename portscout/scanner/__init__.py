"""Scanner package: async TCP connect engine, service fingerprinting and resolution."""

from .engine import OpenPort, Scanner
from .fingerprinting import PortCategory, ServiceDetector, ServiceInfo, port_category
from .ip_utils import resolve_target, to_ip_address

__all__ = [
    "OpenPort",
    "Scanner",
    "PortCategory",
    "ServiceDetector",
    "ServiceInfo",
    "port_category",
    "resolve_target",
    "to_ip_address",
]
