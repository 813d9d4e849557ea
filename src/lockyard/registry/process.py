"""Run the registry as a child process and wait for its port report."""

from __future__ import annotations

import signal
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

from lockyard.errors import RegistryError
from lockyard.registry.handshake import wait_for_port


@dataclass(slots=True)
class RegistryProcess:
    snapshot: Path
    report_to: Path | None = None
    timeout: float = 60.0
    log_file: Path | None = None
    port: int | None = None
    _process: subprocess.Popen[bytes] | None = field(default=None, repr=False)
    _scratch: tempfile.TemporaryDirectory[str] | None = field(default=None, repr=False)

    @property
    def url(self) -> str:
        if self.port is None:
            raise RegistryError("Registry process has not reported a port yet.")
        return f"http://localhost:{self.port}"

    def start(self) -> int:
        if self.report_to is None:
            self._scratch = tempfile.TemporaryDirectory(prefix="lockyard-port-")
            self.report_to = Path(self._scratch.name) / "port"

        command = [
            sys.executable,
            "-m",
            "lockyard.registry",
            "--snapshot",
            str(self.snapshot),
            "--report-to",
            str(self.report_to),
        ]
        if self.log_file is not None:
            command.extend(["--log-file", str(self.log_file)])
        self._process = subprocess.Popen(
            command,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )

        process = self._process
        try:
            self.port = wait_for_port(
                self.report_to,
                timeout=self.timeout,
                alive=lambda: process.poll() is None,
            )
        except RegistryError as exc:
            stderr = self._terminate()
            raise RegistryError(
                "Registry process failed to start.",
                hint=str(exc),
                context={
                    "snapshot": str(self.snapshot),
                    "returncode": str(process.returncode),
                    "stderr": stderr[-2000:],
                },
            ) from exc
        return self.port

    def stop(self) -> int | None:
        """Send SIGTERM and wait; returns the exit code."""
        if self._process is None:
            return None
        self._terminate()
        if self._scratch is not None:
            self._scratch.cleanup()
            self._scratch = None
        return self._process.returncode

    def _terminate(self) -> str:
        process = self._process
        if process is None:
            return ""
        if process.poll() is None:
            process.send_signal(signal.SIGTERM)
        try:
            _, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            _, stderr = process.communicate()
        return (stderr or b"").decode("utf-8", errors="replace")

    def __enter__(self) -> RegistryProcess:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
