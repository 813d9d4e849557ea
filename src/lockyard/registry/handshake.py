"""Port-report handshake between the registry process and its client.

The registry writes its bound port to a file once the listener is live. The
file's existence is the readiness signal; waiters poll for it with a bounded,
backing-off loop.
"""

from __future__ import annotations

import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from lockyard.errors import RegistryError


def write_port_report(path: str | Path, port: int) -> Path:
    """Write ``<port>\\n`` to *path* via rename, so readers never see a partial value."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=".port-", dir=str(report_path.parent))
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(f"{port}\n")
    os.replace(temp_name, report_path)
    return report_path


def read_port_report(path: str | Path) -> int | None:
    try:
        text = Path(path).read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    if not text.isdigit():
        raise RegistryError(
            "Port report does not contain a port number.",
            context={"path": str(path), "content": text[:64]},
        )
    return int(text)


def wait_for_port(
    path: str | Path,
    *,
    timeout: float = 60.0,
    interval: float = 0.05,
    max_interval: float = 1.0,
    alive: Callable[[], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Block until *path* holds a port number, or raise :class:`RegistryError`.

    ``alive`` lets the caller abort early when the registry process has
    already exited.
    """
    deadline = clock() + timeout
    delay = interval
    while True:
        port = read_port_report(path)
        if port is not None:
            return port
        if alive is not None and not alive():
            raise RegistryError(
                "Registry exited before reporting its port.",
                hint="Check the registry's stderr; the snapshot may be unreadable.",
                context={"path": str(path)},
            )
        remaining = deadline - clock()
        if remaining <= 0:
            raise RegistryError(
                "Timed out waiting for the registry to report its port.",
                hint="Check that the registry process started and its snapshot is valid.",
                context={"path": str(path), "timeout": f"{timeout:g}s"},
            )
        sleep(min(delay, remaining))
        delay = min(delay * 2, max_interval)
