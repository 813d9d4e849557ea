"""Error hierarchy shared by the resolver, the registry and the CLIs.

Every error carries a stable ``code`` (see :class:`ErrorCode`), an optional
``hint`` telling the user what to do next, and a ``context`` mapping naming the
lock file, package, path or URL involved.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import ClassVar


class ErrorCode(StrEnum):
    VALIDATION = "E_VALIDATION"
    LOCKFILE = "E_LOCKFILE"
    INTEGRITY = "E_INTEGRITY"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"
    FETCH = "E_FETCH"
    SNAPSHOT = "E_SNAPSHOT"
    REGISTRY = "E_REGISTRY"
    POLICY = "E_POLICY"


class LockyardError(Exception):
    default_code: ClassVar[ErrorCode] = ErrorCode.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code: str = (code or self.default_code).value
        self.hint = hint
        self.context: dict[str, str] = dict(context or {})

    def __str__(self) -> str:
        lines = [self.message]
        if self.hint:
            lines.append(f"Hint: {self.hint}")
        lines.extend(f"  {key}: {value}" for key, value in self.context.items() if value)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(LockyardError):
    default_code = ErrorCode.VALIDATION


class LockfileError(LockyardError):
    default_code = ErrorCode.LOCKFILE


class IntegrityError(LockyardError):
    default_code = ErrorCode.INTEGRITY


class ReproducibilityError(LockyardError):
    """Content did not match its pinned digest (download, cache or store)."""

    default_code = ErrorCode.REPRODUCIBILITY


class FetchError(LockyardError):
    default_code = ErrorCode.FETCH


class SnapshotError(LockyardError):
    default_code = ErrorCode.SNAPSHOT


class RegistryError(LockyardError):
    default_code = ErrorCode.REGISTRY


class PolicyError(LockyardError):
    default_code = ErrorCode.POLICY


__all__ = [
    "ErrorCode",
    "FetchError",
    "IntegrityError",
    "LockfileError",
    "LockyardError",
    "PolicyError",
    "RegistryError",
    "ReproducibilityError",
    "SnapshotError",
    "ValidationError",
]
