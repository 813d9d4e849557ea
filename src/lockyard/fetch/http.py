"""Integrity-enforced HTTP/file fetch implementation."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen

from lockyard.errors import FetchError, ReproducibilityError
from lockyard.integrity import Integrity
from lockyard.policy import Policy, ensure_network_allowed


def fetch(
    url: str,
    *,
    integrity: Integrity | None,
    cache_dir: str | Path,
    policy: Policy | None = None,
) -> Path:
    """Fetch content and return a content-addressed cached path."""
    cache_path = Path(cache_dir)
    cache_path.mkdir(parents=True, exist_ok=True)
    if integrity is None:
        if policy is not None:
            ensure_network_allowed(policy=policy, operation="fetch", url=url)
        return _fetch_without_integrity(url=url, cache_dir=cache_path)

    artifact_path = cache_path / f"{integrity.algorithm}-{integrity.hexdigest}"
    if artifact_path.exists():
        _assert_hash_matches(artifact_path, expected=integrity)
        return artifact_path

    if policy is not None:
        ensure_network_allowed(policy=policy, operation="fetch", url=url)
    payload = _download(url)

    actual = Integrity.of(payload, integrity.algorithm)
    if actual != integrity:
        raise ReproducibilityError(
            "Fetched content hash mismatch.",
            hint="The lock document pins different content than the URL serves.",
            context={
                "operation": "fetch",
                "url": url,
                "expected": str(integrity),
                "actual": str(actual),
            },
        )

    _write_atomic(artifact_path, payload)
    return artifact_path


def _fetch_without_integrity(*, url: str, cache_dir: Path) -> Path:
    payload = _download(url)
    digest = hashlib.sha256(payload).hexdigest()
    artifact_path = cache_dir / f"sha256-{digest}"
    if not artifact_path.exists():
        _write_atomic(artifact_path, payload)
    return artifact_path


def _download(url: str) -> bytes:
    try:
        with urlopen(url) as response:  # noqa: S310
            return response.read()
    except (URLError, OSError, ValueError) as exc:
        raise FetchError(
            "Failed to download artifact.",
            hint="Check that the resolved URL in the lock document is reachable.",
            context={"operation": "fetch", "url": url, "error": str(exc)},
        ) from exc


def _write_atomic(path: Path, payload: bytes) -> None:
    # Readers only ever see a complete file.
    fd, temp_name = tempfile.mkstemp(prefix=".fetch-", dir=str(path.parent))
    with os.fdopen(fd, "wb") as handle:
        handle.write(payload)
    os.replace(temp_name, path)


def _assert_hash_matches(path: Path, *, expected: Integrity) -> None:
    actual = Integrity.of(path.read_bytes(), expected.algorithm)
    if actual != expected:
        raise ReproducibilityError(
            "Cached artifact hash mismatch.",
            hint="Clear cache and refetch with trusted inputs.",
            context={
                "operation": "fetch",
                "path": str(path),
                "expected": str(expected),
                "actual": str(actual),
            },
        )
