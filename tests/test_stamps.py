from dataclasses import replace
from pathlib import Path
from typing import Any

import cbor2
import pytest

from xcfbuild.errors import ConsistencyError
from xcfbuild.models import PlatformGroup
from xcfbuild.stamps import (
    PACKAGE_STAGE,
    BuildStamp,
    StageStamps,
    StampStore,
    file_digests,
    inputs_digest,
    merge_stage,
)

BASE = BuildStamp(
    target="iOS-iOS-arm64",
    library_version="2.5.5",
    source_sha256="ab" * 32,
    configure_args=("--prefix=/tmp/install", "--enable-static"),
    env={"CFLAGS": "-arch arm64", "CC": "clang"},
)


def _stamp(**overrides: Any) -> BuildStamp:
    return replace(BASE, **overrides)


def test_stamp_encoding_is_canonical() -> None:
    first = _stamp(env={"CC": "clang", "CFLAGS": "-arch arm64"})
    second = _stamp(env={"CFLAGS": "-arch arm64", "CC": "clang"})

    assert first.to_cbor() == second.to_cbor()
    assert first.digest() == second.digest()
    assert BuildStamp.from_cbor(first.to_cbor()) == first


def test_any_input_change_changes_the_digest() -> None:
    base = _stamp().digest()

    assert _stamp(library_version="2.6.0").digest() != base
    assert _stamp(configure_args=("--enable-static",)).digest() != base
    assert _stamp(env={"CC": "gcc"}).digest() != base


def test_store_matches_reports_unknown_same_and_stale(tmp_path: Path) -> None:
    store = StampStore(tmp_path / "stamps")

    assert store.matches(_stamp()) is None
    path = store.save(_stamp())
    assert path == tmp_path / "stamps" / "iOS-iOS-arm64.cbor"
    assert store.matches(_stamp()) is True
    assert store.matches(_stamp(source_sha256="cd" * 32)) is False
    assert not path.with_suffix(".tmp").exists()


@pytest.mark.parametrize(
    "raw",
    [
        b"\xff\xff",
        cbor2.dumps(["not", "a", "map"]),
        cbor2.dumps({"schema_version": 99}),
        cbor2.dumps({"schema_version": 1, "target": "x"}),
    ],
)
def test_malformed_stamps_are_consistency_errors(raw: bytes) -> None:
    with pytest.raises(ConsistencyError):
        BuildStamp.from_cbor(raw)


def test_stage_stamps_match_save_and_discard(tmp_path: Path) -> None:
    stages = StageStamps(tmp_path / "stages")
    stage = merge_stage(PlatformGroup("iOS", "iOS_Simulator"))

    assert stage == "merge-iOS-iOS_Simulator"
    assert stages.matches(stage, "ab") is False
    stages.save(stage, "ab")
    stages.save(PACKAGE_STAGE, "cd")
    assert stages.matches(stage, "ab") is True
    assert stages.matches(stage, "ef") is False

    stages.discard(stage, PACKAGE_STAGE)

    assert stages.matches(stage, "ab") is False
    assert stages.matches(PACKAGE_STAGE, "cd") is False
    assert list((tmp_path / "stages").iterdir()) == []


def test_inputs_digest_follows_file_contents(tmp_path: Path) -> None:
    (tmp_path / "include").mkdir()
    (tmp_path / "include" / "ldap.h").write_text("/* one */\n", encoding="utf-8")
    before = inputs_digest({"headers": file_digests(tmp_path, [Path("include/ldap.h")])})

    (tmp_path / "include" / "ldap.h").write_text("/* two */\n", encoding="utf-8")
    after = inputs_digest({"headers": file_digests(tmp_path, [Path("include/ldap.h")])})

    assert before != after
    assert inputs_digest({"a": 1, "b": 2}) == inputs_digest({"b": 2, "a": 1})
