"""Tarball normalization applied to every fetched package."""

from .repackage import PACKAGE_DIR, repackage, write_tarball
from .scripts import NPX_PREFIX, patch_scripts
from .shebangs import patch_shebang, patch_shebangs, search_path_digest

__all__ = [
    "NPX_PREFIX",
    "PACKAGE_DIR",
    "patch_scripts",
    "patch_shebang",
    "patch_shebangs",
    "repackage",
    "search_path_digest",
    "write_tarball",
]
