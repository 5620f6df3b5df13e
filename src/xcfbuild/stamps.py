"""Canonical stamps recording the inputs a stage was computed from.

A target install is stamped with its configure inputs. A derived stage
(the merge of one platform group, the final packaging) is stamped with the
digest of the files it consumed, and is reused only while that digest and
its outputs are still current.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import cbor2

from .errors import ConsistencyError
from .fetch.http import file_sha256
from .models import PlatformGroup

STAMP_SCHEMA_VERSION = 1
PACKAGE_STAGE = "package"


@dataclass(frozen=True, slots=True)
class BuildStamp:
    target: str
    library_version: str
    source_sha256: str
    configure_args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)

    def to_cbor(self) -> bytes:
        return cbor2.dumps(self._payload(), canonical=True)

    def digest(self) -> str:
        return hashlib.sha256(self.to_cbor()).hexdigest()

    @classmethod
    def from_cbor(cls, raw: bytes) -> BuildStamp:
        try:
            payload = cbor2.loads(raw)
        except (cbor2.CBORDecodeError, ValueError) as exc:
            raise ConsistencyError("Build stamp is not valid CBOR.", hint=str(exc)) from exc
        if not isinstance(payload, dict) or payload.get("schema_version") != STAMP_SCHEMA_VERSION:
            raise ConsistencyError("Build stamp has an unsupported structure.")
        try:
            return cls(
                target=str(payload["target"]),
                library_version=str(payload["library_version"]),
                source_sha256=str(payload["source_sha256"]),
                configure_args=tuple(payload["configure_args"]),
                env=dict(payload["env"]),
            )
        except (KeyError, TypeError) as exc:
            raise ConsistencyError("Build stamp is missing fields.", hint=str(exc)) from exc

    def _payload(self) -> dict[str, Any]:
        return {
            "schema_version": STAMP_SCHEMA_VERSION,
            "target": self.target,
            "library_version": self.library_version,
            "source_sha256": self.source_sha256,
            "configure_args": list(self.configure_args),
            "env": dict(sorted(self.env.items())),
        }


class StampStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, target: str) -> Path:
        return self.root / f"{target}.cbor"

    def load(self, target: str) -> BuildStamp | None:
        path = self.path_for(target)
        if not path.exists():
            return None
        return BuildStamp.from_cbor(path.read_bytes())

    def save(self, stamp: BuildStamp) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(stamp.target)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_bytes(stamp.to_cbor())
        temp_path.replace(path)
        return path

    def matches(self, stamp: BuildStamp) -> bool | None:
        """Compare *stamp* with the stored one; ``None`` when nothing is stored."""
        stored = self.load(stamp.target)
        if stored is None:
            return None
        return stored.digest() == stamp.digest()


def merge_stage(group: PlatformGroup) -> str:
    return f"merge-{group.dir_name}"


def inputs_digest(payload: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical CBOR encoding of *payload*."""
    return hashlib.sha256(cbor2.dumps(payload, canonical=True)).hexdigest()


def file_digests(root: Path, paths: Iterable[Path]) -> dict[str, str]:
    """Map each path relative to *root* to the SHA-256 of its content."""
    return {Path(path).as_posix(): file_sha256(root / path) for path in sorted(paths)}


class StageStamps:
    """Input digests of the derived stages, one ``<stage>.digest`` file each."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, stage: str) -> Path:
        return self.root / f"{stage}.digest"

    def matches(self, stage: str, digest: str) -> bool:
        path = self.path_for(stage)
        return path.exists() and path.read_text(encoding="utf-8").strip() == digest

    def save(self, stage: str, digest: str) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(stage)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(digest + "\n", encoding="utf-8")
        temp_path.replace(path)
        return path

    def discard(self, *stages: str) -> None:
        for stage in stages:
            self.path_for(stage).unlink(missing_ok=True)


__all__ = [
    "BuildStamp",
    "PACKAGE_STAGE",
    "StageStamps",
    "StampStore",
    "file_digests",
    "inputs_digest",
    "merge_stage",
]
