"""Lock document parser and discovery helpers."""

from __future__ import annotations

import json
import re
import warnings
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from lockyard.errors import LockfileError
from lockyard.lockfile.model import (
    FALLBACK_PACKAGE_NAME,
    FALLBACK_PACKAGE_VERSION,
    DependencyNode,
    LockGraph,
)

LOCK_FILE_NAMES = ("package-lock.json", "npm-shrinkwrap.json")

FETCHABLE_PREFIXES = ("http://", "https://", "file://")

# Adapted from `validate-npm-package-name`.
SCOPED_NAME_PATTERN = re.compile(r"^(?:@([^/]+)/)?([^/]+)$")

_NESTED_EDGE_FIELDS = ("dependencies", "optionalDependencies", "peerDependencies")
_LOCAL_EDGE_FIELDS = ("dependencies", "devDependencies", "optionalDependencies", "peerDependencies")


class MissingPackageJsonWarning(UserWarning):
    """Warning raised when a source tree has no package.json."""


def parse_lock_document(
    raw: str,
    *,
    name: str | None = None,
    version: str | None = None,
    source: str | None = None,
) -> LockGraph:
    """Parse lock document text into a :class:`LockGraph`.

    The document's own ``name``/``version`` take precedence over the explicit
    overrides, which take precedence over the fallbacks.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LockfileError(
            "Invalid lock document JSON.",
            hint=str(exc),
            context={"lockfile": source or ""},
        ) from exc

    if not isinstance(payload, dict):
        raise LockfileError(
            "Invalid lock document payload type.",
            hint="A lock document must be a JSON object.",
            context={"lockfile": source or ""},
        )

    root = DependencyNode(
        name=_optional_str(payload, "name") or name or FALLBACK_PACKAGE_NAME,
        version=_optional_str(payload, "version") or version or FALLBACK_PACKAGE_VERSION,
        integrity=_integrity(payload),
        path="",
    )

    dependencies = payload.get("dependencies")
    packages = payload.get("packages")
    if not isinstance(dependencies, dict) and isinstance(packages, dict):
        return _graph_from_packages(root, packages, source=source)
    return _graph_from_tree(root, payload, source=source)


def read_lock_document(
    path: str | Path,
    *,
    name: str | None = None,
    version: str | None = None,
) -> LockGraph:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Lock document does not exist.",
            hint="Point --lock at an existing package-lock.json or npm-shrinkwrap.json.",
            context={"lockfile": str(lock_path)},
        ) from exc
    return parse_lock_document(raw, name=name, version=version, source=str(lock_path))


def find_lock_file(root: str | Path) -> Path | None:
    """Return the package lock or shrinkwrap under *root*, or None."""
    root_path = Path(root)
    for filename in LOCK_FILE_NAMES:
        candidate = root_path / filename
        if candidate.is_file():
            return candidate
    return None


def select_lock_files(
    root: str | Path,
    *,
    package_lock: str | Path | None = None,
    additional: Iterable[str | Path] = (),
) -> tuple[Path, ...]:
    """Order the lock files to resolve; the main lock comes last so it wins merges."""
    selected = [Path(item) for item in additional]
    main = Path(package_lock) if package_lock is not None else find_lock_file(root)
    if main is not None:
        selected.append(main)
    if not selected:
        raise LockfileError(
            f"Could not find a suitable package lock in {root}.",
            hint=(
                "If you pass --lock or --additional-lock, those files are used.\n"
                f"Otherwise, if there is a file 'package-lock.json' in {root}, it is used.\n"
                f"Otherwise, if there is a file 'npm-shrinkwrap.json' in {root}, it is used.\n"
                "Otherwise, you will see this error message."
            ),
            context={"root": str(root)},
        )
    return tuple(selected)


def read_package_json(root: str | Path) -> dict[str, Any]:
    package_json = Path(root) / "package.json"
    if not package_json.is_file():
        warnings.warn(
            f"package.json not found in {root}",
            MissingPackageJsonWarning,
            stacklevel=2,
        )
        return {}
    try:
        parsed = json.loads(package_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise LockfileError(
            "Invalid package.json.",
            hint=str(exc),
            context={"path": str(package_json)},
        ) from exc
    return parsed if isinstance(parsed, dict) else {}


def reformat_package_name(name: str) -> str:
    """Flatten a possibly scoped name: ``@org/pkg`` becomes ``org-pkg``."""
    match = SCOPED_NAME_PATTERN.match(name)
    if match is None:
        return name
    return "-".join(part for part in match.groups() if part is not None)


def build_name(package_json: dict[str, Any]) -> str:
    """Return ``<flattened name>-<version>`` for a parsed package.json."""
    pname = _optional_str(package_json, "name") or FALLBACK_PACKAGE_NAME
    version = _optional_str(package_json, "version") or FALLBACK_PACKAGE_VERSION
    return f"{reformat_package_name(pname)}-{version}"


def _graph_from_tree(
    root: DependencyNode,
    payload: dict[str, Any],
    *,
    source: str | None,
) -> LockGraph:
    nodes: dict[str, DependencyNode] = {root.path: root}
    edges: dict[str, tuple[str, ...]] = {}
    pending: list[tuple[str, dict[str, Any]]] = [(root.path, payload)]
    while pending:
        path, entry = pending.pop()
        children: list[str] = []
        nested = entry.get("dependencies")
        if isinstance(nested, dict):
            for dep_name in sorted(nested):
                dep_entry = nested[dep_name]
                if not isinstance(dep_entry, dict):
                    continue
                child_path = _child_path(path, dep_name)
                nodes[child_path] = _node(dep_name, dep_entry, child_path)
                children.append(child_path)
                pending.append((child_path, dep_entry))
        edges[path] = tuple(children)
    return LockGraph(root=root.path, nodes=nodes, edges=edges, source=source)


def _graph_from_packages(
    root: DependencyNode,
    packages: dict[str, Any],
    *,
    source: str | None,
) -> LockGraph:
    entries = {path: entry for path, entry in packages.items() if isinstance(entry, dict)}
    root_entry = entries.get("", {})

    nodes: dict[str, DependencyNode] = {root.path: root}
    for path, entry in entries.items():
        if path == "" or entry.get("link"):
            continue
        nodes[path] = _node(_name_from_path(path, entry), entry, path)

    edges: dict[str, tuple[str, ...]] = {}
    for path in nodes:
        entry = root_entry if path == "" else entries[path]
        fields = _LOCAL_EDGE_FIELDS if "node_modules/" not in path else _NESTED_EDGE_FIELDS
        names = sorted(
            {dep for field_name in fields for dep in _dependency_names(entry, field_name)}
        )
        children: list[str] = []
        for dep_name in names:
            target = _follow_links(_lookup(path, dep_name, entries), entries)
            if target is not None and target in nodes and target not in children:
                children.append(target)
        if path == "":
            # Workspace members are installed as top-level links.
            for link_path, link_entry in sorted(entries.items()):
                if link_entry.get("link") and link_path.count("node_modules/") == 1:
                    target = _follow_links(link_path, entries)
                    if target is not None and target in nodes and target not in children:
                        children.append(target)
        edges[path] = tuple(children)
    return LockGraph(root=root.path, nodes=nodes, edges=edges, source=source)


def _lookup(path: str, dep_name: str, entries: dict[str, dict[str, Any]]) -> str | None:
    """Node's resolution rule: nearest ``node_modules/<dep>`` walking up from *path*."""
    base = path
    while True:
        candidate = _child_path(base, dep_name)
        if candidate in entries:
            return candidate
        if not base:
            return None
        index = base.rfind("/node_modules/")
        base = base[:index] if index >= 0 else ""


def _follow_links(path: str | None, entries: dict[str, dict[str, Any]]) -> str | None:
    seen: set[str] = set()
    while path is not None and entries.get(path, {}).get("link"):
        if path in seen:
            return None
        seen.add(path)
        target = entries[path].get("resolved")
        path = target if isinstance(target, str) else None
    return path


def _node(name: str, entry: dict[str, Any], path: str) -> DependencyNode:
    resolved = _optional_str(entry, "resolved")
    if resolved is not None and not resolved.startswith(FETCHABLE_PREFIXES):
        resolved = None
    return DependencyNode(
        name=name,
        version=_optional_str(entry, "version") or FALLBACK_PACKAGE_VERSION,
        integrity=_integrity(entry),
        resolved=resolved,
        path=path,
    )


def _name_from_path(path: str, entry: dict[str, Any]) -> str:
    explicit = _optional_str(entry, "name")
    if explicit is not None:
        return explicit
    if "node_modules/" in path:
        return path.rsplit("node_modules/", 1)[1]
    return path.rsplit("/", 1)[-1]


def _child_path(parent: str, name: str) -> str:
    return f"{parent}/node_modules/{name}" if parent else f"node_modules/{name}"


def _dependency_names(entry: dict[str, Any], field_name: str) -> Sequence[str]:
    value = entry.get(field_name)
    if not isinstance(value, dict):
        return ()
    return [key for key in value if isinstance(key, str)]


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        return None
    return value


def _integrity(entry: dict[str, Any]) -> str | None:
    # Present values stay verbatim; parse_integrity rejects malformed ones.
    value = entry.get("integrity")
    if value is None:
        return None
    return value if isinstance(value, str) else json.dumps(value)
