"""Local npm registry serving an immutable snapshot over HTTP."""

from __future__ import annotations

import json
import threading
from enum import StrEnum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from types import TracebackType
from typing import Any

from lockyard.errors import RegistryError
from lockyard.observability import StructuredLogger
from lockyard.registry.handshake import write_port_report
from lockyard.registry.routes import NOT_FOUND, PackumentRoute, build_packument, parse_route
from lockyard.snapshot.model import Snapshot

BAD_REQUEST: dict[str, str] = {"error": "Bad request"}


class RegistryState(StrEnum):
    STARTING = "starting"
    SERVING = "serving"
    STOPPED = "stopped"


class RegistryHTTPServer(ThreadingHTTPServer):
    # In-flight responses are finished on shutdown.
    daemon_threads = False
    block_on_close = True

    def __init__(
        self,
        address: tuple[str, int],
        *,
        snapshot: Snapshot,
        logger: StructuredLogger,
    ) -> None:
        self.snapshot = snapshot
        self.logger = logger
        super().__init__(address, RegistryRequestHandler)


class RegistryRequestHandler(BaseHTTPRequestHandler):
    server: RegistryHTTPServer
    server_version = "lockyard-registry"
    protocol_version = "HTTP/1.1"
    # Idle keep-alive connections are dropped so shutdown can join handler threads.
    timeout = 10

    def log_message(self, format: str, *args: Any) -> None:
        self.server.logger.log(
            operation="request",
            message=format % args,
            level="debug",
            extra={"client": self.address_string()},
        )

    def log_error(self, format: str, *args: Any) -> None:
        self.server.logger.log(
            operation="request",
            message=format % args,
            level="error",
            extra={"client": self.address_string()},
        )

    def do_GET(self) -> None:
        self._dispatch(include_body=True)

    def do_HEAD(self) -> None:
        self._dispatch(include_body=False)

    def do_POST(self) -> None:
        # Audit and other write endpoints are not part of the offline surface.
        try:
            length = int(self.headers.get("Content-Length") or "0")
        except ValueError:
            length = -1
        if length < 0:
            self.close_connection = True
            self._send_json(400, BAD_REQUEST, include_body=True)
            return
        if length:
            self.rfile.read(length)
        self._send_json(404, NOT_FOUND, include_body=True)

    def _dispatch(self, *, include_body: bool) -> None:
        route = parse_route(self.path)
        if route is None:
            self._send_json(404, NOT_FOUND, include_body=include_body)
            return

        snapshot = self.server.snapshot
        if isinstance(route, PackumentRoute):
            try:
                document = build_packument(snapshot, route.name, base_url=self._base_url())
            except OSError as exc:
                self._send_unreadable(route.name, exc, include_body=include_body)
                return
            if document is None:
                self._send_json(404, NOT_FOUND, include_body=include_body)
                return
            self._send_json(200, document, include_body=include_body)
            return

        version = route.version
        location = snapshot.tarball(route.name, version) if version is not None else None
        if location is None:
            self._send_json(404, NOT_FOUND, include_body=include_body)
            return
        try:
            payload = Path(location).read_bytes()
        except OSError as exc:
            self._send_unreadable(f"{route.name}@{version}", exc, include_body=include_body)
            return
        self._send_bytes(200, payload, "application/octet-stream", include_body=include_body)

    def _base_url(self) -> str:
        host = self.headers.get("Host") or f"localhost:{self.server.server_address[1]}"
        return f"http://{host}"

    def _send_unreadable(self, package: str, exc: OSError, *, include_body: bool) -> None:
        self.server.logger.log(
            operation="request",
            package=package,
            level="error",
            message="Snapshot tarball is not readable.",
            extra={"error": str(exc), "path": self.path},
        )
        error = {"error": "Snapshot tarball is not readable"}
        self._send_json(500, error, include_body=include_body)

    def _send_json(self, status: int, payload: dict[str, Any], *, include_body: bool) -> None:
        body = json.dumps(payload, sort_keys=True).encode("utf-8")
        self._send_bytes(status, body, "application/json", include_body=include_body)

    def _send_bytes(
        self,
        status: int,
        body: bytes,
        content_type: str,
        *,
        include_body: bool,
    ) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)


class RegistryServer:
    """Lifecycle wrapper: ``starting`` -> ``serving`` -> ``stopped``."""

    def __init__(
        self,
        snapshot: Snapshot,
        *,
        host: str = "127.0.0.1",
        port: int = 0,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.host = host
        self.requested_port = port
        self.logger = logger or StructuredLogger()
        self.state = RegistryState.STARTING
        self._httpd: RegistryHTTPServer | None = None
        self._loop_started = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        if self._httpd is None:
            raise RegistryError("Registry listener is not bound.")
        return int(self._httpd.server_address[1])

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"

    def start(self, report_to: str | Path | None = None) -> int:
        """Bind the listener, then report the bound port to *report_to*."""
        if self.state is not RegistryState.STARTING:
            raise RegistryError(
                "Registry can only be started once.",
                context={"state": self.state.value},
            )
        try:
            self._httpd = RegistryHTTPServer(
                (self.host, self.requested_port),
                snapshot=self.snapshot,
                logger=self.logger,
            )
        except OSError as exc:
            raise RegistryError(
                "Unable to bind registry listener.",
                hint=str(exc),
                context={"host": self.host, "port": str(self.requested_port)},
            ) from exc

        port = self.port
        if report_to is not None:
            write_port_report(report_to, port)
        self.state = RegistryState.SERVING
        self.logger.log(
            operation="serve",
            message="Registry is serving.",
            extra={
                "port": port,
                "report_to": str(report_to) if report_to is not None else None,
                "packages": len(self.snapshot.packages),
                "snapshot": self.snapshot.digest,
            },
        )
        return port

    def serve_forever(self, poll_interval: float = 0.5) -> None:
        if self._httpd is None or self.state is not RegistryState.SERVING:
            raise RegistryError("Registry must be started before serving.")
        self._loop_started.set()
        self._httpd.serve_forever(poll_interval=poll_interval)

    def serve_in_background(self) -> threading.Thread:
        if self._httpd is None or self.state is not RegistryState.SERVING:
            raise RegistryError("Registry must be started before serving.")
        self._thread = threading.Thread(
            target=self.serve_forever,
            name="lockyard-registry",
            daemon=True,
        )
        self._thread.start()
        self._loop_started.wait()
        return self._thread

    def stop(self) -> None:
        """Stop accepting requests and wait for in-flight responses."""
        if self.state is RegistryState.STOPPED:
            return
        if self._httpd is not None:
            if self._loop_started.is_set():
                self._httpd.shutdown()
            self._httpd.server_close()
        if self._thread is not None:
            self._thread.join()
        self.state = RegistryState.STOPPED
        self.logger.log(operation="serve", message="Registry stopped.")

    def __enter__(self) -> RegistryServer:
        if self.state is RegistryState.STARTING:
            self.start()
        self.serve_in_background()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
