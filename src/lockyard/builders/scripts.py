"""Rewrite package.json scripts to run through ``npx``."""

from __future__ import annotations

import json
from pathlib import Path

from lockyard.errors import ValidationError

NPX_PREFIX = "npx --no-install"


def patch_scripts(package_json: Path) -> bool:
    """Prefix every script with ``npx --no-install`` so local bins resolve.

    Scripts that already go through npx are kept as-is. Returns True when the
    file was rewritten.
    """
    try:
        manifest = json.loads(package_json.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "Invalid package.json inside package tarball.",
            hint=str(exc),
            context={"path": str(package_json)},
        ) from exc

    scripts = manifest.get("scripts") if isinstance(manifest, dict) else None
    if not isinstance(scripts, dict):
        return False

    changed = False
    for name, command in scripts.items():
        if not isinstance(command, str) or not command.strip():
            continue
        if command.lstrip().startswith("npx "):
            continue
        scripts[name] = f"{NPX_PREFIX} {command}"
        changed = True

    if changed:
        package_json.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return changed
