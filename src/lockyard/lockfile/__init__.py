"""Lock document parsing and discovery."""

from .io import (
    LOCK_FILE_NAMES,
    MissingPackageJsonWarning,
    build_name,
    find_lock_file,
    parse_lock_document,
    read_lock_document,
    read_package_json,
    reformat_package_name,
    select_lock_files,
)
from .model import FALLBACK_PACKAGE_NAME, FALLBACK_PACKAGE_VERSION, DependencyNode, LockGraph

__all__ = [
    "FALLBACK_PACKAGE_NAME",
    "FALLBACK_PACKAGE_VERSION",
    "LOCK_FILE_NAMES",
    "DependencyNode",
    "LockGraph",
    "MissingPackageJsonWarning",
    "build_name",
    "find_lock_file",
    "parse_lock_document",
    "read_lock_document",
    "read_package_json",
    "reformat_package_name",
    "select_lock_files",
]
