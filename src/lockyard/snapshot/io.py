"""Snapshot parser and serializer."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import cbor2

from lockyard.errors import SnapshotError
from lockyard.snapshot.model import Snapshot

CBOR_SUFFIX = ".cbor"


def parse_snapshot(payload: Any, *, source: str | None = None) -> Snapshot:
    if not isinstance(payload, dict):
        raise SnapshotError(
            "Invalid snapshot payload type.",
            hint="A snapshot maps package names to {version: tarball} objects.",
            context={"path": source or ""},
        )
    packages: dict[str, dict[str, str]] = {}
    for name, versions in payload.items():
        if not isinstance(name, str) or not isinstance(versions, dict):
            raise SnapshotError(
                "Invalid snapshot package entry.",
                context={"path": source or "", "package": str(name)},
            )
        for version, location in versions.items():
            if not isinstance(version, str) or not isinstance(location, str):
                raise SnapshotError(
                    "Invalid snapshot version entry.",
                    context={"path": source or "", "package": f"{name}@{version}"},
                )
        packages[name] = dict(versions)
    return Snapshot(packages=packages)


def read_snapshot(path: str | Path) -> Snapshot:
    snapshot_path = Path(path)
    try:
        raw = snapshot_path.read_bytes()
    except OSError as exc:
        raise SnapshotError(
            "Snapshot file is not readable.",
            hint=exc.strerror or str(exc),
            context={"path": str(snapshot_path)},
        ) from exc

    try:
        if snapshot_path.suffix == CBOR_SUFFIX:
            payload = cbor2.loads(raw)
        else:
            payload = json.loads(raw.decode("utf-8"))
    except (cbor2.CBORDecodeError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotError(
            "Snapshot file is malformed.",
            hint=str(exc),
            context={"path": str(snapshot_path)},
        ) from exc
    return parse_snapshot(payload, source=str(snapshot_path))


def write_snapshot(snapshot: Snapshot, path: str | Path) -> Path:
    """Write JSON, or canonical CBOR when *path* ends in ``.cbor``."""
    snapshot_path = Path(path)
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    if snapshot_path.suffix == CBOR_SUFFIX:
        encoded = snapshot.to_cbor()
    else:
        encoded = snapshot.to_json().encode("utf-8")
    fd, temp_name = tempfile.mkstemp(prefix=".snapshot-", dir=str(snapshot_path.parent))
    with os.fdopen(fd, "wb") as handle:
        handle.write(encoded)
    os.replace(temp_name, snapshot_path)
    return snapshot_path
