"""Normalize upstream package tarballs into the layout npm unpacks.

The output is a gzip tarball with a single top-level ``package/`` directory,
patched interpreter lines and npx-routed scripts. Member order, timestamps,
ownership and modes are fixed, so repackaging an already repackaged tarball
reproduces it byte for byte.
"""

from __future__ import annotations

import gzip
import shutil
import tarfile
import tempfile
from collections.abc import Sequence
from pathlib import Path

from lockyard.builders.scripts import patch_scripts
from lockyard.builders.shebangs import patch_shebangs
from lockyard.errors import ValidationError

PACKAGE_DIR = "package"


def repackage(source: Path, *, out_path: Path, search_path: Sequence[Path] = ()) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="lockyard-repack-") as temp:
        work = Path(temp)
        unpacked = work / "unpacked"
        _extract(source, unpacked)

        staged = work / PACKAGE_DIR
        shutil.move(str(_content_root(unpacked)), staged)

        patch_shebangs(staged, search_path)
        package_json = staged / "package.json"
        if package_json.is_file():
            patch_scripts(package_json)

        temp_out = work / "package.tgz"
        write_tarball(staged, temp_out)
        shutil.move(str(temp_out), out_path)
    return out_path


def write_tarball(package_dir: Path, out_path: Path) -> None:
    """Write *package_dir* as ``package/...`` with normalized metadata."""
    with (
        out_path.open("wb") as raw,
        gzip.GzipFile(filename="", fileobj=raw, mode="wb", mtime=0) as compressed,
        tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT) as tar,
    ):
        tar.addfile(_normalize(tar.gettarinfo(str(package_dir), arcname=PACKAGE_DIR)))
        for path in sorted(package_dir.rglob("*")):
            arcname = f"{PACKAGE_DIR}/{path.relative_to(package_dir).as_posix()}"
            info = _normalize(tar.gettarinfo(str(path), arcname=arcname))
            if info.isfile():
                with path.open("rb") as handle:
                    tar.addfile(info, handle)
            else:
                tar.addfile(info)


def _extract(source: Path, destination: Path) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(source, mode="r:*") as tar:
            tar.extractall(destination, filter="data")
    except (tarfile.TarError, OSError) as exc:
        raise ValidationError(
            "Unable to unpack package tarball.",
            hint=str(exc),
            context={"operation": "repackage", "path": str(source)},
        ) from exc


def _content_root(unpacked: Path) -> Path:
    """npm tarballs wrap content in one directory whose name varies."""
    entries = list(unpacked.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        return entries[0]
    return unpacked


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.mtime = 0
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    if info.isdir() or info.mode & 0o100:
        info.mode = 0o755
    else:
        info.mode = 0o644
    return info
