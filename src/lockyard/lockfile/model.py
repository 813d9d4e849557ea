"""Lock document typed model."""

from __future__ import annotations

from dataclasses import dataclass, field

FALLBACK_PACKAGE_NAME = "build-npm-package"
FALLBACK_PACKAGE_VERSION = "0.0.0"


@dataclass(frozen=True, slots=True)
class DependencyNode:
    """One entry of a lock document.

    ``path`` is the entry's install position (``""`` for the top-level package).
    Children live in :attr:`LockGraph.edges`, keyed by that path.
    """

    name: str
    version: str
    integrity: str | None = None
    resolved: str | None = None
    path: str = ""

    @property
    def key(self) -> str:
        """Identity used for de-duplication; lock position is not part of it."""
        if self.integrity is not None:
            return f"{self.name}-{self.version}-{self.integrity}"
        return f"{self.name}-{self.version}-no-integrity"

    @property
    def ident(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True, slots=True)
class LockGraph:
    root: str
    nodes: dict[str, DependencyNode]
    edges: dict[str, tuple[str, ...]] = field(default_factory=dict)
    source: str | None = None

    @property
    def root_node(self) -> DependencyNode:
        return self.nodes[self.root]

    def children(self, path: str) -> tuple[str, ...]:
        return self.edges.get(path, ())


__all__ = [
    "FALLBACK_PACKAGE_NAME",
    "FALLBACK_PACKAGE_VERSION",
    "DependencyNode",
    "LockGraph",
]
