"""Integrity resolution: closure members to verified, repackaged tarballs."""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from lockyard.builders import repackage, search_path_digest
from lockyard.cache import ArtifactInput, ArtifactStore
from lockyard.errors import IntegrityError
from lockyard.fetch import FetchRequest, fetch
from lockyard.integrity import parse_integrity
from lockyard.lockfile.model import DependencyNode
from lockyard.models import ArtifactEntry, ArtifactPlan, ResolveOptions
from lockyard.observability import StructuredLogger
from lockyard.policy import Policy


def plan_artifacts(
    closure: Iterable[DependencyNode],
    *,
    policy: Policy | None = None,
    lockfile: str | None = None,
    logger: StructuredLogger | None = None,
) -> tuple[ArtifactPlan, ...]:
    """Select fetchable members and parse every integrity value.

    Runs before any download, so a bad integrity value aborts with no
    partial output. Members without a resolved URL are skipped.
    """
    policy = policy or Policy()
    plans: list[ArtifactPlan] = []
    for node in closure:
        if node.resolved is None:
            if logger is not None:
                logger.log(
                    operation="plan",
                    package=node.ident,
                    lockfile=lockfile,
                    message="Skipping package without a resolved URL.",
                )
            continue
        if node.integrity is None:
            if policy.require_integrity:
                raise IntegrityError(
                    "Package has a resolved URL but no integrity value.",
                    hint="Regenerate the lock document or relax policy.require_integrity.",
                    context={
                        "package": node.ident,
                        "lockfile": lockfile or "",
                        "url": node.resolved,
                    },
                )
            integrity = None
        else:
            integrity = parse_integrity(node.integrity, package=node.ident, lockfile=lockfile)
        request = FetchRequest(url=node.resolved, integrity=integrity)
        plans.append(ArtifactPlan(node=node, request=request))
    return tuple(plans)


def resolve_artifact(
    plan: ArtifactPlan,
    *,
    options: ResolveOptions,
    store: ArtifactStore,
    logger: StructuredLogger | None = None,
    lockfile: str | None = None,
    path_digest: str | None = None,
) -> ArtifactEntry:
    node, request = plan.node, plan.request
    if path_digest is None:
        path_digest = search_path_digest(options.search_path)

    inputs: ArtifactInput | None = None
    tarball: Path | None = None
    if request.integrity is not None:
        inputs = _inputs(node, request, str(request.integrity), path_digest)
        tarball = store.load(inputs)

    if tarball is None:
        source = fetch(
            request.url,
            integrity=request.integrity,
            cache_dir=options.cache_dir,
            policy=options.policy,
        )
        if logger is not None:
            logger.log(
                operation="fetch",
                package=node.ident,
                lockfile=lockfile,
                message="Fetched and verified upstream tarball.",
                extra={"url": request.url, "path": str(source)},
            )
        if inputs is None:
            inputs = _inputs(node, request, source.name, path_digest)
        tarball = store.load(inputs) or store.save(
            inputs,
            lambda out_path: repackage(source, out_path=out_path, search_path=options.search_path),
        )
        if logger is not None:
            logger.log(
                operation="repackage",
                package=node.ident,
                lockfile=lockfile,
                message="Repackaged tarball.",
                extra={"tarball": str(tarball)},
            )

    return ArtifactEntry(
        name=node.name,
        version=node.version,
        url=request.url,
        integrity=request.integrity,
        tarball=tarball,
    )


def resolve_closure(
    closure: Iterable[DependencyNode],
    *,
    options: ResolveOptions,
    logger: StructuredLogger | None = None,
    lockfile: str | None = None,
) -> tuple[ArtifactEntry, ...]:
    """Plan, then fetch and repackage each artifact on a thread pool.

    Entries come back in plan order; the first failure propagates.
    """
    plans = plan_artifacts(closure, policy=options.policy, lockfile=lockfile, logger=logger)
    if not plans:
        return ()
    store = ArtifactStore(options.store_dir)
    path_digest = search_path_digest(options.search_path)
    with ThreadPoolExecutor(max_workers=max(options.max_workers, 1)) as executor:
        futures = [
            executor.submit(
                resolve_artifact,
                plan,
                options=options,
                store=store,
                logger=logger,
                lockfile=lockfile,
                path_digest=path_digest,
            )
            for plan in plans
        ]
        try:
            return tuple(future.result() for future in futures)
        except BaseException:
            for future in futures:
                future.cancel()
            raise


def _inputs(
    node: DependencyNode,
    request: FetchRequest,
    source_digest: str,
    path_digest: str,
) -> ArtifactInput:
    return ArtifactInput(
        name=node.name,
        version=node.version,
        url=request.url,
        source_digest=source_digest,
        search_path_digest=path_digest,
    )
