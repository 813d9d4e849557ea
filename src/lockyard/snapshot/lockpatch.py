"""Point lock document integrity values at repackaged tarballs.

Repackaging changes tarball bytes, so the client would reject them against
the upstream integrity values. Every lock entry whose ``(name, version)`` is
in the snapshot gets the ``sha512`` of the snapshot tarball instead.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from lockyard.errors import LockfileError, SnapshotError
from lockyard.integrity import Integrity
from lockyard.snapshot.model import Snapshot


def patch_lock_integrity(lock_data: dict[str, Any], snapshot: Snapshot) -> dict[str, Any]:
    patched = copy.deepcopy(lock_data)
    digests: dict[str, str] = {}

    def integrity_for(location: str) -> str:
        if location not in digests:
            try:
                payload = Path(location).read_bytes()
            except OSError as exc:
                raise SnapshotError(
                    "Snapshot tarball is not readable.",
                    hint=exc.strerror or str(exc),
                    context={"path": location},
                ) from exc
            digests[location] = str(Integrity.of(payload, "sha512"))
        return digests[location]

    def patch_entry(name: str, entry: dict[str, Any]) -> None:
        version = entry.get("version")
        if isinstance(version, str) and "resolved" in entry:
            location = snapshot.tarball(name, version)
            if location is not None:
                entry["integrity"] = integrity_for(location)

    pending: list[dict[str, Any]] = [patched]
    while pending:
        entry = pending.pop()
        nested = entry.get("dependencies")
        if isinstance(nested, dict):
            for dep_name, dep_entry in nested.items():
                if isinstance(dep_entry, dict):
                    patch_entry(dep_name, dep_entry)
                    pending.append(dep_entry)

    packages = patched.get("packages")
    if isinstance(packages, dict):
        for path, entry in packages.items():
            if path and isinstance(entry, dict) and not entry.get("link"):
                name = entry.get("name") or path.rsplit("node_modules/", 1)[-1]
                patch_entry(name, entry)

    return patched


def patch_lock_file(path: str | Path, snapshot: Snapshot) -> Path:
    lock_path = Path(path)
    try:
        lock_data = json.loads(lock_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise LockfileError(
            "Unable to read lock document for patching.",
            hint=str(exc),
            context={"lockfile": str(lock_path)},
        ) from exc
    if not isinstance(lock_data, dict):
        raise LockfileError(
            "Invalid lock document payload type.",
            context={"lockfile": str(lock_path)},
        )
    patched = patch_lock_integrity(lock_data, snapshot)
    lock_path.write_text(json.dumps(patched, indent=2) + "\n", encoding="utf-8")
    return lock_path
