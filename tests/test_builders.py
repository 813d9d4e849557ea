import json
import stat
import tarfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from lockyard.builders import (
    NPX_PREFIX,
    patch_scripts,
    patch_shebang,
    patch_shebangs,
    repackage,
    search_path_digest,
)
from lockyard.errors import ValidationError


def _fake_bin(tmp_path: Path, *names: str) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)
    for name in names:
        program = bin_dir / name
        program.write_text("#!/bin/true\n", encoding="utf-8")
        program.chmod(0o755)
    return bin_dir


def test_patch_shebang_resolves_env_interpreter(tmp_path: Path) -> None:
    bin_dir = _fake_bin(tmp_path, "node")
    script = tmp_path / "cli.js"
    script.write_text("#!/usr/bin/env node\nconsole.log(1)\n", encoding="utf-8")
    script.chmod(0o750)

    assert patch_shebang(script, [bin_dir])
    assert script.read_text(encoding="utf-8") == f"#!{bin_dir / 'node'}\nconsole.log(1)\n"
    assert stat.S_IMODE(script.stat().st_mode) == 0o750


def test_patch_shebang_handles_env_split_and_arguments(tmp_path: Path) -> None:
    bin_dir = _fake_bin(tmp_path, "node", "sh")
    split = tmp_path / "split.js"
    split.write_text("#!/usr/bin/env -S node --no-warnings\n", encoding="utf-8")
    direct = tmp_path / "run.sh"
    direct.write_text("#!/bin/sh -e\necho hi\n", encoding="utf-8")

    assert patch_shebang(split, [bin_dir])
    assert patch_shebang(direct, [bin_dir])

    assert split.read_text(encoding="utf-8") == f"#!{bin_dir / 'node'} --no-warnings\n"
    assert direct.read_text(encoding="utf-8").startswith(f"#!{bin_dir / 'sh'} -e\n")


def test_patch_shebang_is_idempotent(tmp_path: Path) -> None:
    bin_dir = _fake_bin(tmp_path, "node")
    script = tmp_path / "cli.js"
    script.write_text("#!/usr/bin/env node\n", encoding="utf-8")

    assert patch_shebang(script, [bin_dir])
    assert not patch_shebang(script, [bin_dir])


def test_patch_shebang_leaves_unknown_interpreter(tmp_path: Path) -> None:
    script = tmp_path / "cli.js"
    script.write_text("#!/usr/bin/env not-a-real-interpreter\n", encoding="utf-8")

    assert not patch_shebang(script, [tmp_path / "empty"])
    assert script.read_text(encoding="utf-8") == "#!/usr/bin/env not-a-real-interpreter\n"


def test_patch_shebangs_only_touches_candidates(tmp_path: Path) -> None:
    bin_dir = _fake_bin(tmp_path, "node")
    tree = tmp_path / "tree"
    (tree / "bin").mkdir(parents=True)
    (tree / "bin" / "tool").write_text("#!/usr/bin/env node\n", encoding="utf-8")
    (tree / "lib.js").write_text("#!/usr/bin/env node\n", encoding="utf-8")
    (tree / "README.md").write_text("#!/usr/bin/env node\n", encoding="utf-8")

    patched = patch_shebangs(tree, [bin_dir])

    assert patched == [tree / "bin" / "tool", tree / "lib.js"]
    assert (tree / "README.md").read_text(encoding="utf-8") == "#!/usr/bin/env node\n"


def test_patch_scripts_routes_through_npx(tmp_path: Path) -> None:
    package_json = tmp_path / "package.json"
    package_json.write_text(
        json.dumps(
            {
                "name": "demo",
                "scripts": {
                    "build": "tsc -p .",
                    "test": "npx jest",
                    "empty": "",
                },
            }
        ),
        encoding="utf-8",
    )

    assert patch_scripts(package_json)
    scripts = json.loads(package_json.read_text(encoding="utf-8"))["scripts"]
    assert scripts == {"build": f"{NPX_PREFIX} tsc -p .", "test": "npx jest", "empty": ""}
    assert not patch_scripts(package_json)


def test_patch_scripts_without_scripts_is_noop(tmp_path: Path) -> None:
    package_json = tmp_path / "package.json"
    package_json.write_text('{"name": "demo"}', encoding="utf-8")

    assert not patch_scripts(package_json)
    assert package_json.read_text(encoding="utf-8") == '{"name": "demo"}'


def test_patch_scripts_rejects_invalid_json(tmp_path: Path) -> None:
    package_json = tmp_path / "package.json"
    package_json.write_text("{", encoding="utf-8")

    with pytest.raises(ValidationError):
        patch_scripts(package_json)


def test_repackage_normalizes_layout_and_patches(
    tmp_path: Path,
    make_package: Callable[..., Any],
) -> None:
    bin_dir = _fake_bin(tmp_path, "node")
    manifest = {"name": "demo", "version": "1.0.0", "scripts": {"start": "node ."}}
    upstream = make_package(
        "demo",
        "1.0.0",
        top="demo-1.0.0",
        files={"package.json": json.dumps(manifest), "bin/cli.js": "#!/usr/bin/env node\n"},
        modes={"bin/cli.js": 0o755},
    )
    out = tmp_path / "out" / "package.tgz"

    repackage(upstream.path, out_path=out, search_path=[bin_dir])

    with tarfile.open(out, mode="r:gz") as tar:
        members = {member.name: member for member in tar.getmembers()}
        cli = _read_member(tar, "package/bin/cli.js").decode("utf-8")
        packaged = json.loads(_read_member(tar, "package/package.json"))

    assert all(name == "package" or name.startswith("package/") for name in members)
    assert cli == f"#!{bin_dir / 'node'}\n"
    assert packaged["scripts"]["start"] == f"{NPX_PREFIX} node ."
    assert members["package/bin/cli.js"].mode == 0o755
    assert members["package/package.json"].mode == 0o644
    assert {member.mtime for member in members.values()} == {0}
    assert {member.uid for member in members.values()} == {0}


def test_repackage_is_deterministic_and_idempotent(
    tmp_path: Path,
    make_package: Callable[..., Any],
) -> None:
    bin_dir = _fake_bin(tmp_path, "node")
    upstream = make_package("demo", "1.0.0", files={"index.js": "#!/usr/bin/env node\n"})

    first = repackage(upstream.path, out_path=tmp_path / "a.tgz", search_path=[bin_dir])
    second = repackage(upstream.path, out_path=tmp_path / "b.tgz", search_path=[bin_dir])
    again = repackage(first, out_path=tmp_path / "c.tgz", search_path=[bin_dir])

    assert first.read_bytes() == second.read_bytes()
    assert again.read_bytes() == first.read_bytes()


def test_repackage_rejects_non_tarball(tmp_path: Path) -> None:
    source = tmp_path / "broken.tgz"
    source.write_bytes(b"not a tarball")

    with pytest.raises(ValidationError):
        repackage(source, out_path=tmp_path / "out.tgz")


def _read_member(tar: tarfile.TarFile, name: str) -> bytes:
    handle = tar.extractfile(name)
    assert handle is not None
    return handle.read()


def test_search_path_digest_follows_directory_contents(tmp_path: Path) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    other = tmp_path / "other"

    empty = search_path_digest([bin_dir])
    assert search_path_digest([bin_dir]) == empty
    assert search_path_digest([]) != empty
    assert search_path_digest([bin_dir, other]) != empty

    (bin_dir / "node").write_text("", encoding="utf-8")
    assert search_path_digest([bin_dir]) != empty
