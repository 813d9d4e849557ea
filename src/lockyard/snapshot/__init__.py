"""Snapshot model, assembly and persistence."""

from .assemble import assemble, build_snapshot, snapshot_from_entries, snapshot_from_lock
from .io import parse_snapshot, read_snapshot, write_snapshot
from .lockpatch import patch_lock_file, patch_lock_integrity
from .model import Snapshot

__all__ = [
    "Snapshot",
    "assemble",
    "build_snapshot",
    "parse_snapshot",
    "patch_lock_file",
    "patch_lock_integrity",
    "read_snapshot",
    "snapshot_from_entries",
    "snapshot_from_lock",
    "write_snapshot",
]
