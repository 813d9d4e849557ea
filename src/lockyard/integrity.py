"""Subresource-integrity strings as found in npm lock documents."""

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from typing import Literal

from lockyard.errors import IntegrityError

HashAlgorithm = Literal["sha1", "sha512"]

# Strongest first.
SUPPORTED_ALGORITHMS: tuple[HashAlgorithm, ...] = ("sha512", "sha1")


@dataclass(frozen=True, slots=True)
class Integrity:
    algorithm: HashAlgorithm
    value: str

    def __str__(self) -> str:
        return f"{self.algorithm}-{self.value}"

    @property
    def hexdigest(self) -> str:
        return base64.b64decode(self.value).hex()

    def matches(self, payload: bytes) -> bool:
        return Integrity.of(payload, self.algorithm) == self

    @classmethod
    def of(cls, payload: bytes, algorithm: HashAlgorithm = "sha512") -> Integrity:
        digest = hashlib.new(algorithm, payload).digest()
        return cls(algorithm=algorithm, value=base64.b64encode(digest).decode("ascii"))


def parse_integrity(
    text: str,
    *,
    package: str | None = None,
    lockfile: str | None = None,
) -> Integrity:
    """Parse an integrity string, aborting on anything but ``sha1-``/``sha512-``.

    A whitespace-separated SRI list is accepted only if every entry is
    recognized; the strongest algorithm is returned.
    """
    context = {"package": package or "", "lockfile": lockfile or "", "integrity": text}
    tokens = text.split()
    if not tokens:
        raise IntegrityError(
            "Empty integrity value.",
            context=context,
        )

    parsed: list[Integrity] = []
    for token in tokens:
        algorithm, sep, value = token.partition("-")
        if not sep or algorithm not in SUPPORTED_ALGORITHMS:
            raise IntegrityError(
                f"Unknown sha for {token}",
                hint="Only sha1- and sha512- integrity values are supported.",
                context=context,
            )
        try:
            base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise IntegrityError(
                "Integrity payload is not valid base64.",
                hint=str(exc),
                context=context,
            ) from exc
        parsed.append(Integrity(algorithm=algorithm, value=value))  # type: ignore[arg-type]

    return min(parsed, key=lambda item: SUPPORTED_ALGORITHMS.index(item.algorithm))
