"""Command-line entry points.

Usage:
    lockyard-snapshot --root ./app --out snapshot.json
    lockyard-registry --snapshot snapshot.json --report-to /tmp/port
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
import threading
from collections.abc import Sequence
from pathlib import Path
from types import FrameType

from lockyard.errors import LockyardError
from lockyard.lockfile import read_package_json, select_lock_files
from lockyard.models import ResolveOptions
from lockyard.observability import StructuredLogger
from lockyard.policy import Policy
from lockyard.registry.server import RegistryServer
from lockyard.snapshot import build_snapshot, patch_lock_file, read_snapshot, write_snapshot


def registry_main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lockyard-registry",
        description="Serve a package snapshot as a local npm registry",
    )
    parser.add_argument("--snapshot", required=True, type=Path, help="Snapshot file to serve")
    parser.add_argument(
        "--report-to",
        required=True,
        type=Path,
        help="File that receives the bound port once the listener is live",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    parser.add_argument("--log-file", type=Path, help="Write structured log records here")
    args = parser.parse_args(argv)

    logger = StructuredLogger()
    stop_requested = threading.Event()

    def request_stop(signum: int, frame: FrameType | None) -> None:
        stop_requested.set()

    try:
        snapshot = read_snapshot(args.snapshot)
        signal.signal(signal.SIGTERM, request_stop)
        signal.signal(signal.SIGINT, request_stop)
        server = RegistryServer(snapshot, host=args.host, logger=logger)
        server.start(report_to=args.report_to)
    except LockyardError as exc:
        _report_error(exc)
        _flush_log(logger, args.log_file)
        return 1

    server.serve_in_background()
    try:
        stop_requested.wait()
    finally:
        server.stop()
        _flush_log(logger, args.log_file)
    return 0


def snapshot_main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lockyard-snapshot",
        description="Resolve npm lock files into a verified tarball snapshot",
    )
    parser.add_argument("--root", type=Path, default=Path("."), help="Package source root")
    parser.add_argument("--lock", type=Path, help="Package lock to use instead of discovery")
    parser.add_argument(
        "--additional-lock",
        type=Path,
        action="append",
        default=[],
        help="Extra lock file, resolved before the main lock (repeatable)",
    )
    parser.add_argument("--name", help="Top-level package name if the lock has none")
    parser.add_argument("--version", help="Top-level package version if the lock has none")
    parser.add_argument("--out", type=Path, required=True, help="Snapshot output (.json or .cbor)")
    parser.add_argument("--store", type=Path, help="Repackaged tarball store")
    parser.add_argument("--cache", type=Path, help="Upstream download cache")
    parser.add_argument(
        "--search-path",
        default=os.environ.get("PATH", ""),
        help="PATH-style list used to resolve script interpreters",
    )
    parser.add_argument("--jobs", type=int, default=8, help="Parallel fetches")
    parser.add_argument("--offline", action="store_true", help="Forbid network access")
    parser.add_argument(
        "--allow-missing-integrity",
        action="store_true",
        help="Accept resolved packages that carry no integrity value",
    )
    parser.add_argument(
        "--patch-lock",
        action="store_true",
        help="Rewrite lock integrity values to match the repackaged tarballs",
    )
    parser.add_argument("--log-file", type=Path, help="Write structured log records here")
    args = parser.parse_args(argv)

    # Snapshot locations must stay valid from any working directory.
    state_dir = args.out.parent.resolve() / ".lockyard"
    options = ResolveOptions(
        store_dir=(args.store or state_dir / "store").resolve(),
        cache_dir=(args.cache or state_dir / "cache").resolve(),
        search_path=tuple(
            Path(item).resolve() for item in args.search_path.split(os.pathsep) if item
        ),
        max_workers=args.jobs,
        policy=Policy(
            require_integrity=not args.allow_missing_integrity,
            network_mode="offline" if args.offline else "online",
        ),
    )

    logger = StructuredLogger()
    try:
        lock_paths = select_lock_files(
            args.root,
            package_lock=args.lock,
            additional=args.additional_lock,
        )
        package_json = read_package_json(args.root)
        name = args.name or package_json.get("name")
        version = args.version or package_json.get("version")
        snapshot = build_snapshot(
            lock_paths,
            options=options,
            name=name if isinstance(name, str) else None,
            version=version if isinstance(version, str) else None,
            logger=logger,
        )
        write_snapshot(snapshot, args.out)
        if args.patch_lock:
            for lock_path in lock_paths:
                patch_lock_file(lock_path, snapshot)
    except LockyardError as exc:
        _report_error(exc)
        return 1
    finally:
        _flush_log(logger, args.log_file)

    print(f"Wrote {len(snapshot)} packages to {args.out} (sha256 {snapshot.digest})")
    return 0


def _report_error(exc: LockyardError) -> None:
    print(f"error [{exc.code}]: {exc}", file=sys.stderr)


def _flush_log(logger: StructuredLogger, path: Path | None) -> None:
    if path is not None:
        logger.to_json_lines(path)
