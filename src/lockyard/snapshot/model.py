"""Snapshot model, export, and lookup helpers."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import cbor2


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Immutable ``name -> version -> tarball location`` mapping."""

    packages: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {
            name: MappingProxyType(dict(sorted(versions.items())))
            for name, versions in sorted(self.packages.items())
        }
        object.__setattr__(self, "packages", MappingProxyType(frozen))

    def __len__(self) -> int:
        return sum(len(versions) for versions in self.packages.values())

    def __iter__(self) -> Iterator[tuple[str, str, str]]:
        for name, versions in self.packages.items():
            for version, location in versions.items():
                yield name, version, location

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, tuple) or len(item) != 2:
            return False
        name, version = item
        return version in self.packages.get(name, {})

    def versions(self, name: str) -> Mapping[str, str]:
        return self.packages.get(name, MappingProxyType({}))

    def tarball(self, name: str, version: str) -> str | None:
        return self.packages.get(name, {}).get(version)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {name: dict(versions) for name, versions in self.packages.items()}

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self.to_dict(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.to_cbor()).hexdigest()
