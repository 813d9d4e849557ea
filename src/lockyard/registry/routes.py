"""Registry URL routing and packument rendering.

Only the subset of the npm registry protocol an install exercises is
implemented: a package document lookup and a tarball download.
"""

from __future__ import annotations

import functools
import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

from lockyard.integrity import Integrity
from lockyard.snapshot.model import Snapshot

NOT_FOUND: dict[str, str] = {"error": "Not found"}

_SEMVER = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$")


@dataclass(frozen=True, slots=True)
class PackumentRoute:
    name: str


@dataclass(frozen=True, slots=True)
class TarballRoute:
    name: str
    filename: str

    @property
    def version(self) -> str | None:
        prefix = f"{basename(self.name)}-"
        if not self.filename.startswith(prefix) or not self.filename.endswith(".tgz"):
            return None
        version = self.filename[len(prefix) : -len(".tgz")]
        return version or None


Route = PackumentRoute | TarballRoute


def parse_route(raw_path: str) -> Route | None:
    """Map a request path to a route.

    Accepts ``/name``, ``/@scope/name``, ``/@scope%2fname`` and the same
    prefixes followed by ``/-/<file>.tgz``.
    """
    segments = [unquote(segment) for segment in urlsplit(raw_path).path.split("/") if segment]
    if not segments:
        return None

    if segments[0].startswith("@") and "/" not in segments[0]:
        if len(segments) < 2:
            return None
        name, rest = f"{segments[0]}/{segments[1]}", segments[2:]
    else:
        name, rest = segments[0], segments[1:]

    if not _valid_name(name):
        return None
    if not rest:
        return PackumentRoute(name=name)
    if len(rest) == 2 and rest[0] == "-":
        return TarballRoute(name=name, filename=rest[1])
    return None


def basename(name: str) -> str:
    """``@scope/pkg`` -> ``pkg``; unscoped names are returned unchanged."""
    return name.rsplit("/", 1)[-1]


def tarball_url(base_url: str, name: str, version: str) -> str:
    return f"{base_url}/{name}/-/{basename(name)}-{version}.tgz"


def build_packument(snapshot: Snapshot, name: str, *, base_url: str) -> dict[str, Any] | None:
    """Return the package document for *name*, or None if it is not in the snapshot.

    Tarball digests are computed once per file and reused; ``OSError``
    propagates when a tarball is unreadable.
    """
    versions = snapshot.versions(name)
    if not versions:
        return None

    rendered: dict[str, Any] = {}
    for version, location in versions.items():
        shasum, integrity = tarball_digests(location)
        rendered[version] = {
            "name": name,
            "version": version,
            "dist": {
                "tarball": tarball_url(base_url, name, version),
                "shasum": shasum,
                "integrity": integrity,
            },
        }

    return {
        "name": name,
        "dist-tags": {"latest": latest_version(list(versions))},
        "versions": rendered,
    }


def tarball_digests(location: str) -> tuple[str, str]:
    """Return the hex sha1 and sha512 SRI string of the tarball at *location*."""
    stat = Path(location).stat()
    return _tarball_digests(location, stat.st_mtime_ns, stat.st_size)


@functools.lru_cache(maxsize=4096)
def _tarball_digests(location: str, mtime_ns: int, size: int) -> tuple[str, str]:
    payload = Path(location).read_bytes()
    shasum = hashlib.sha1(payload).hexdigest()  # noqa: S324 - protocol field
    return shasum, str(Integrity.of(payload, "sha512"))


def latest_version(versions: list[str]) -> str:
    """Highest release by semver precedence; prereleases only if nothing else exists."""
    releases = [version for version in versions if _is_release(version)]
    return max(releases or versions, key=version_key)


def version_key(version: str) -> tuple[Any, ...]:
    match = _SEMVER.match(version)
    if match is None:
        return (0, version)
    major, minor, patch, prerelease = match.groups()
    if prerelease is None:
        pre_key: tuple[Any, ...] = (1,)
    else:
        pre_key = (
            0,
            tuple(
                (0, int(part), "") if part.isdigit() else (1, 0, part)
                for part in prerelease.split(".")
            ),
        )
    return (1, int(major), int(minor), int(patch), pre_key)


def _is_release(version: str) -> bool:
    match = _SEMVER.match(version)
    return match is not None and match.group(4) is None


def _valid_name(name: str) -> bool:
    if name.startswith((".", "_")) or name == "-":
        return False
    return "/" not in name or (name.startswith("@") and name.count("/") == 1)
