import json
from pathlib import Path
from threading import Thread

import pytest

from lockyard.errors import (
    ErrorCode,
    FetchError,
    IntegrityError,
    LockfileError,
    LockyardError,
    PolicyError,
    RegistryError,
    ReproducibilityError,
    SnapshotError,
    ValidationError,
)
from lockyard.models import ArtifactEntry
from lockyard.observability import StructuredLogger
from lockyard.policy import Policy, ensure_network_allowed


@pytest.mark.parametrize(
    ("error_type", "code"),
    [
        (ValidationError, ErrorCode.VALIDATION),
        (LockfileError, ErrorCode.LOCKFILE),
        (IntegrityError, ErrorCode.INTEGRITY),
        (ReproducibilityError, ErrorCode.REPRODUCIBILITY),
        (FetchError, ErrorCode.FETCH),
        (SnapshotError, ErrorCode.SNAPSHOT),
        (RegistryError, ErrorCode.REGISTRY),
        (PolicyError, ErrorCode.POLICY),
    ],
)
def test_error_types_carry_stable_codes(error_type: type[LockyardError], code: ErrorCode) -> None:
    error = error_type("boom")

    assert isinstance(error, LockyardError)
    assert error.code == code.value
    assert error.to_dict() == {"code": code.value, "message": "boom", "context": {}}


def test_error_string_includes_hint_and_context() -> None:
    error = IntegrityError(
        "Unknown sha for md5-AAAA",
        hint="Only sha1- and sha512- integrity values are supported.",
        context={"package": "a@1.0.0", "lockfile": ""},
    )

    rendered = str(error)
    assert rendered.splitlines() == [
        "Unknown sha for md5-AAAA",
        "Hint: Only sha1- and sha512- integrity values are supported.",
        "  package: a@1.0.0",
    ]
    assert error.to_dict()["hint"] == error.hint


def test_policy_defaults_and_offline_enforcement() -> None:
    policy = Policy()
    assert policy.require_integrity is True
    assert policy.network_mode == "online"
    ensure_network_allowed(policy=policy, operation="fetch")

    with pytest.raises(PolicyError) as exc:
        ensure_network_allowed(
            policy=Policy(network_mode="offline"),
            operation="fetch",
            url="https://registry.example/a.tgz",
        )
    assert exc.value.context == {"operation": "fetch", "url": "https://registry.example/a.tgz"}


def test_artifact_entry_hash_fields() -> None:
    entry = ArtifactEntry(name="a", version="1.0.0", url="u", integrity=None, tarball=Path("t"))

    assert entry.hash_algorithm is None
    assert entry.hash_value is None


def test_structured_logger_filters_and_exports(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(operation="fetch", package="a@1.0.0", message="fetched")
    logger.log(operation="assemble", level="warning", message="override", extra={"input": 1})

    assert [record["package"] for record in logger.records_for_operation("fetch")] == ["a@1.0.0"]
    assert logger.records_at_level("warning")[0]["extra"] == {"input": 1}

    output = logger.to_json_lines(tmp_path / "logs" / "run.jsonl")
    lines = [json.loads(line) for line in output.read_text(encoding="utf-8").splitlines()]
    assert [line["operation"] for line in lines] == ["fetch", "assemble"]


def test_structured_logger_accepts_concurrent_writers() -> None:
    logger = StructuredLogger()

    def write() -> None:
        for index in range(200):
            logger.log(operation="request", message=str(index))

    threads = [Thread(target=write) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(logger.records) == 800
