"""Content-addressed store of repackaged tarballs with manifest verification."""

from __future__ import annotations

import hashlib
import json
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from lockyard.cache.keys import ArtifactInput, _to_payload, store_key
from lockyard.errors import ReproducibilityError

TARBALL_NAME = "package.tgz"
MANIFEST_NAME = "manifest.json"


class ArtifactStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, inputs: ArtifactInput) -> Path:
        return self.root / store_key(inputs) / TARBALL_NAME

    def load(self, inputs: ArtifactInput) -> Path | None:
        key = store_key(inputs)
        entry = self.root / key
        tarball_path = entry / TARBALL_NAME
        manifest_path = entry / MANIFEST_NAME
        if not tarball_path.exists() or not manifest_path.exists():
            return None

        manifest = self._read_manifest(manifest_path)
        if manifest.get("inputs") != _to_payload(inputs):
            raise ReproducibilityError(
                "Store manifest inputs do not match expected artifact inputs.",
                hint="Remove the store entry and resolve again.",
                context={"operation": "store_load", "key": key},
            )

        actual_digest = _sha512_file(tarball_path)
        if manifest.get("tarball_sha512") != actual_digest:
            raise ReproducibilityError(
                "Store tarball digest mismatch.",
                hint="Remove the store entry and resolve again.",
                context={"operation": "store_load", "key": key, "path": str(tarball_path)},
            )
        return tarball_path

    def save(self, inputs: ArtifactInput, build: Callable[[Path], object]) -> Path:
        """Run ``build(tarball_path)`` in a scratch entry, then publish it under its key."""
        key = store_key(inputs)
        final_entry = self.root / key
        scratch = Path(tempfile.mkdtemp(prefix=f".{key}-", dir=str(self.root)))
        try:
            tarball_path = scratch / TARBALL_NAME
            build(tarball_path)
            manifest = {
                "key": key,
                "inputs": _to_payload(inputs),
                "tarball_sha512": _sha512_file(tarball_path),
            }
            (scratch / MANIFEST_NAME).write_text(
                json.dumps(manifest, indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            try:
                scratch.rename(final_entry)
            except OSError:
                # Another worker published the same key first.
                if not final_entry.exists():
                    raise
        finally:
            if scratch.exists():
                shutil.rmtree(scratch, ignore_errors=True)

        loaded = self.load(inputs)
        if loaded is None:
            raise ReproducibilityError(
                "Store entry vanished after publishing.",
                context={"operation": "store_save", "key": key},
            )
        return loaded

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ReproducibilityError(
                "Store manifest is not valid JSON.",
                hint="Remove the store entry and resolve again.",
                context={"operation": "store_load", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise ReproducibilityError(
                "Store manifest has invalid structure.",
                hint="Remove the store entry and resolve again.",
                context={"operation": "store_load", "path": str(path)},
            )
        return parsed


def _sha512_file(path: Path) -> str:
    digest = hashlib.sha512()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()
