"""Store key derivation."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9+\-._?=]")


@dataclass(frozen=True, slots=True)
class ArtifactInput:
    name: str
    version: str
    url: str
    source_digest: str
    search_path_digest: str = ""


def store_key(inputs: ArtifactInput) -> str:
    """Return ``<digest>-<name>-<version>``, safe to use as a directory name."""
    canonical = json.dumps(_to_payload(inputs), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]
    return f"{digest}-{sanitize_name(inputs.name)}-{sanitize_name(inputs.version)}"


def sanitize_name(name: str) -> str:
    return _UNSAFE_CHARS.sub("-", name).lstrip(".") or "unknown"


def _to_payload(inputs: ArtifactInput) -> dict[str, Any]:
    return {
        "name": inputs.name,
        "version": inputs.version,
        "url": inputs.url,
        "source_digest": inputs.source_digest,
        "search_path_digest": inputs.search_path_digest,
    }
