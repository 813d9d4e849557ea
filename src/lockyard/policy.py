"""Policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from lockyard.errors import PolicyError

NetworkMode = Literal["online", "offline"]


@dataclass(frozen=True, slots=True)
class Policy:
    require_integrity: bool = True
    network_mode: NetworkMode = "online"


def ensure_network_allowed(*, policy: Policy, operation: str, url: str | None = None) -> None:
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Prefill the download cache or switch policy.network_mode to 'online'.",
            context={"operation": operation, "url": url or ""},
        )
