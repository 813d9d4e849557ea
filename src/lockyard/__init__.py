"""Public package entrypoint for the offline npm snapshot resolver."""

from .closure import build_closure, generic_closure
from .errors import (
    ErrorCode,
    FetchError,
    IntegrityError,
    LockfileError,
    LockyardError,
    PolicyError,
    RegistryError,
    ReproducibilityError,
    SnapshotError,
    ValidationError,
)
from .integrity import Integrity, parse_integrity
from .lockfile import DependencyNode, LockGraph, read_lock_document, select_lock_files
from .models import ArtifactEntry, ResolveOptions
from .observability import StructuredLogger
from .policy import Policy
from .registry import RegistryProcess, RegistryServer
from .resolve import resolve_closure
from .snapshot import Snapshot, assemble, build_snapshot, read_snapshot, write_snapshot

__all__ = [
    "ArtifactEntry",
    "DependencyNode",
    "ErrorCode",
    "FetchError",
    "Integrity",
    "IntegrityError",
    "LockGraph",
    "LockfileError",
    "LockyardError",
    "Policy",
    "PolicyError",
    "RegistryError",
    "RegistryProcess",
    "RegistryServer",
    "ReproducibilityError",
    "ResolveOptions",
    "Snapshot",
    "SnapshotError",
    "StructuredLogger",
    "ValidationError",
    "assemble",
    "build_closure",
    "build_snapshot",
    "generic_closure",
    "parse_integrity",
    "read_lock_document",
    "read_snapshot",
    "resolve_closure",
    "select_lock_files",
    "write_snapshot",
]
