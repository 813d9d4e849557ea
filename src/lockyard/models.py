"""Core resolver models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from lockyard.fetch import FetchRequest
from lockyard.integrity import HashAlgorithm, Integrity
from lockyard.lockfile.model import DependencyNode
from lockyard.policy import Policy


@dataclass(frozen=True, slots=True)
class ResolveOptions:
    store_dir: Path
    cache_dir: Path
    search_path: tuple[Path, ...] = ()
    max_workers: int = 8
    policy: Policy = field(default_factory=Policy)


@dataclass(frozen=True, slots=True)
class ArtifactPlan:
    """A closure member that will be fetched, verified and repackaged."""

    node: DependencyNode
    request: FetchRequest


@dataclass(frozen=True, slots=True)
class ArtifactEntry:
    name: str
    version: str
    url: str
    integrity: Integrity | None
    tarball: Path

    @property
    def hash_algorithm(self) -> HashAlgorithm | None:
        return self.integrity.algorithm if self.integrity is not None else None

    @property
    def hash_value(self) -> str | None:
        return self.integrity.value if self.integrity is not None else None


__all__ = ["ArtifactEntry", "ArtifactPlan", "ResolveOptions"]
