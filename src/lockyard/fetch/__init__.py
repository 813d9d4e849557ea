"""Integrity-checked retrieval of upstream package tarballs."""

from __future__ import annotations

from dataclasses import dataclass

from lockyard.integrity import Integrity

from .http import fetch


@dataclass(frozen=True, slots=True)
class FetchRequest:
    url: str
    integrity: Integrity | None


__all__ = ["FetchRequest", "fetch"]
