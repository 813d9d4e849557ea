"""Shared test fixtures."""

from __future__ import annotations

import io
import json
import tarfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from lockyard.integrity import Integrity
from lockyard.models import ResolveOptions


@dataclass(frozen=True)
class UpstreamPackage:
    name: str
    version: str
    path: Path
    url: str
    integrity: str

    def lock_entry(self, **extra: Any) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "version": self.version,
            "resolved": self.url,
            "integrity": self.integrity,
        }
        entry.update(extra)
        return entry


def write_npm_tarball(
    path: Path,
    files: dict[str, str | bytes],
    *,
    top: str = "package",
    modes: dict[str, int] | None = None,
    mtime: int = 1_700_000_000,
) -> Path:
    """Write a gzip tarball with every file under ``<top>/``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    modes = modes or {}
    with tarfile.open(path, mode="w:gz") as tar:
        for relative, content in sorted(files.items()):
            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(f"{top}/{relative}")
            info.size = len(data)
            info.mode = modes.get(relative, 0o644)
            info.mtime = mtime
            tar.addfile(info, io.BytesIO(data))
    return path


def sri(payload: bytes, algorithm: str = "sha512") -> str:
    return str(Integrity.of(payload, algorithm))  # type: ignore[arg-type]


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., UpstreamPackage]:
    """Build an upstream tarball reachable through a ``file://`` URL."""

    def factory(
        name: str,
        version: str,
        *,
        files: dict[str, str | bytes] | None = None,
        top: str = "package",
        modes: dict[str, int] | None = None,
    ) -> UpstreamPackage:
        manifest = {"name": name, "version": version}
        contents: dict[str, str | bytes] = {"package.json": json.dumps(manifest)}
        contents.update(files or {})
        filename = f"{name.replace('/', '-').lstrip('@')}-{version}.tgz"
        path = write_npm_tarball(
            tmp_path / "upstream" / filename,
            contents,
            top=top,
            modes=modes,
        )
        return UpstreamPackage(
            name=name,
            version=version,
            path=path,
            url=path.as_uri(),
            integrity=sri(path.read_bytes()),
        )

    return factory


@pytest.fixture
def write_lock(tmp_path: Path) -> Callable[..., Path]:
    """Write a tree-format lock document."""

    def factory(
        path: Path | str,
        dependencies: dict[str, Any],
        *,
        name: str | None = "app",
        version: str | None = "1.0.0",
    ) -> Path:
        lock_path = Path(path)
        if not lock_path.is_absolute():
            lock_path = tmp_path / lock_path
        document: dict[str, Any] = {"lockfileVersion": 1, "dependencies": dependencies}
        if name is not None:
            document["name"] = name
        if version is not None:
            document["version"] = version
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return lock_path

    return factory


@pytest.fixture
def resolve_options(tmp_path: Path) -> ResolveOptions:
    return ResolveOptions(
        store_dir=tmp_path / "store",
        cache_dir=tmp_path / "cache",
        max_workers=4,
    )
