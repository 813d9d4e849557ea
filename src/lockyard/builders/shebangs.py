"""Interpreter-line rewriting for unpacked package trees."""

from __future__ import annotations

import hashlib
import os
import shutil
import stat
from collections.abc import Sequence
from pathlib import Path

PATCHED_SUFFIXES = (".js", ".sh")


def patch_shebangs(root: Path, search_path: Sequence[Path]) -> list[Path]:
    """Rewrite interpreter lines under *root*; returns the files that changed."""
    patched: list[Path] = []
    for path in sorted(root.rglob("*")):
        if path.is_symlink() or not path.is_file() or not _is_candidate(path):
            continue
        if patch_shebang(path, search_path):
            patched.append(path)
    return patched


def patch_shebang(path: Path, search_path: Sequence[Path]) -> bool:
    """Point ``#!`` at an absolute interpreter found on *search_path*.

    ``#!/usr/bin/env prog args`` and ``#!/some/bin/prog args`` both become
    ``#!/resolved/prog args``. Lines whose interpreter cannot be found are
    left untouched.
    """
    content = path.read_bytes()
    if not content.startswith(b"#!"):
        return False
    first, newline, rest = content.partition(b"\n")
    try:
        line = first[2:].decode("utf-8").strip()
    except UnicodeDecodeError:
        return False

    parts = line.split()
    if not parts:
        return False
    interpreter, args = parts[0], parts[1:]
    if Path(interpreter).name == "env":
        if args and args[0] == "-S":
            args = args[1:]
        if not args:
            return False
        program, args = args[0], args[1:]
    else:
        program = Path(interpreter).name

    resolved = shutil.which(program, path=os.pathsep.join(str(item) for item in search_path))
    if resolved is None:
        return False

    replacement = "#!" + " ".join([resolved, *args])
    if replacement == first.decode("utf-8").rstrip("\r"):
        return False

    mode = stat.S_IMODE(path.stat().st_mode)
    path.write_bytes(replacement.encode("utf-8") + newline + rest)
    os.chmod(path, mode)
    return True


def search_path_digest(search_path: Sequence[Path]) -> str:
    """Digest of the directories on *search_path* and the names they hold.

    Repackaged output depends on it, since shebangs resolve against those
    directories. It changes when a program is added or removed, or when the
    directory order changes.
    """
    digest = hashlib.sha256()
    for directory in search_path:
        digest.update(os.fsencode(directory) + b"\0")
        try:
            names = sorted(entry.name for entry in os.scandir(directory))
        except (FileNotFoundError, NotADirectoryError):
            names = []
        for name in names:
            digest.update(os.fsencode(name) + b"\0")
        digest.update(b"\1")
    return digest.hexdigest()


def _is_candidate(path: Path) -> bool:
    if path.suffix in PATCHED_SUFFIXES:
        return True
    if "." not in path.name:
        return True
    return bool(path.stat().st_mode & 0o111)
