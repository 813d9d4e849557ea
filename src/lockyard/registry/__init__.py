"""Local registry serving a snapshot to an unmodified npm client."""

from .handshake import read_port_report, wait_for_port, write_port_report
from .process import RegistryProcess
from .routes import PackumentRoute, TarballRoute, build_packument, parse_route
from .server import RegistryServer, RegistryState

__all__ = [
    "PackumentRoute",
    "RegistryProcess",
    "RegistryServer",
    "RegistryState",
    "TarballRoute",
    "build_packument",
    "parse_route",
    "read_port_report",
    "wait_for_port",
    "write_port_report",
]
