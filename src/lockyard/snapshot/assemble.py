"""Fold resolved artifacts from one or more lock files into a single snapshot."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from lockyard.closure import build_closure
from lockyard.lockfile import read_lock_document
from lockyard.models import ArtifactEntry, ResolveOptions
from lockyard.observability import StructuredLogger
from lockyard.resolve import resolve_closure
from lockyard.snapshot.model import Snapshot


def snapshot_from_entries(entries: Iterable[ArtifactEntry]) -> Snapshot:
    packages: dict[str, dict[str, str]] = {}
    for entry in entries:
        packages.setdefault(entry.name, {})[entry.version] = str(entry.tarball.resolve())
    return Snapshot(packages=packages)


def assemble(
    snapshots: Sequence[Snapshot],
    *,
    logger: StructuredLogger | None = None,
) -> Snapshot:
    """Merge *snapshots* in order; a later ``(name, version)`` replaces an earlier one."""
    merged: dict[str, dict[str, str]] = {}
    for index, snapshot in enumerate(snapshots):
        for name, version, location in snapshot:
            versions = merged.setdefault(name, {})
            previous = versions.get(version)
            if previous is not None and previous != location and logger is not None:
                logger.log(
                    operation="assemble",
                    package=f"{name}@{version}",
                    level="warning",
                    message="Later lock file overrides an earlier tarball location.",
                    extra={"previous": previous, "replacement": location, "input": index},
                )
            versions[version] = location
    return Snapshot(packages=merged)


def snapshot_from_lock(
    path: str | Path,
    *,
    options: ResolveOptions,
    name: str | None = None,
    version: str | None = None,
    logger: StructuredLogger | None = None,
) -> Snapshot:
    graph = read_lock_document(path, name=name, version=version)
    closure = build_closure(graph)
    if logger is not None:
        logger.log(
            operation="closure",
            package=graph.root_node.ident,
            lockfile=str(path),
            message="Computed dependency closure.",
            extra={"members": len(closure)},
        )
    entries = resolve_closure(closure, options=options, logger=logger, lockfile=str(path))
    return snapshot_from_entries(entries)


def build_snapshot(
    lock_paths: Sequence[str | Path],
    *,
    options: ResolveOptions,
    name: str | None = None,
    version: str | None = None,
    logger: StructuredLogger | None = None,
) -> Snapshot:
    """Resolve every lock file in order and merge the results right-biased."""
    per_lock = [
        snapshot_from_lock(path, options=options, name=name, version=version, logger=logger)
        for path in lock_paths
    ]
    snapshot = assemble(per_lock, logger=logger)
    if logger is not None:
        logger.log(
            operation="assemble",
            message="Assembled snapshot.",
            extra={"lockfiles": [str(path) for path in lock_paths], "digest": snapshot.digest},
        )
    return snapshot
