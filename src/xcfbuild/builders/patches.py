"""Target-scoped textual patches applied to an extracted source tree."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from xcfbuild.models import TargetTriple

PATCH_MARKER = ".xcfbuild-patched"
PATCHED_SUFFIXES = frozenset({".c", ".h"})
LIBLUTIL_MAKEFILE = Path("libraries") / "liblutil" / "Makefile.in"

_CROSS_COMPILE_PROBE = re.compile(
    rb'as_fn_error \$\? "cannot run test program while cross compiling[^"]*"'
)
_FORK_UNITS = re.compile(rb"[ \t]*\bdetach\.[co]\b")


@dataclass(frozen=True, slots=True)
class PatchSet:
    header_namespace: str
    upstream_namespace: str = "openssl"
    strip_fork_units: bool = True

    @classmethod
    def for_target(
        cls,
        target: TargetTriple,
        *,
        header_namespace: str,
        upstream_namespace: str = "openssl",
    ) -> PatchSet:
        # fork() is only available on native macOS.
        return cls(
            header_namespace=header_namespace,
            upstream_namespace=upstream_namespace,
            strip_fork_units=not target.is_native_macos,
        )


def apply_patches(source_root: Path, patches: PatchSet) -> bool:
    """Patch *source_root* once.

    The marker is written before any patch runs, so a tree whose patching
    was interrupted must be deleted to be patched again. Returns ``False``
    when the tree was already patched.
    """
    marker = source_root / PATCH_MARKER
    if marker.exists():
        return False
    marker.write_text(
        f"{patches.upstream_namespace} -> {patches.header_namespace}\n",
        encoding="utf-8",
    )

    if patches.header_namespace != patches.upstream_namespace:
        rewrite_include_namespace(source_root, patches.upstream_namespace, patches.header_namespace)
    neutralize_cross_compile_probes(source_root / "configure")
    if patches.strip_fork_units:
        strip_fork_units(source_root / LIBLUTIL_MAKEFILE)
    return True


def rewrite_include_namespace(source_root: Path, old: str, new: str) -> list[Path]:
    """Rewrite ``#include <old/...>`` and ``#include "old/..."`` in C sources and headers."""
    pattern = re.compile(rb'(#[ \t]*include[ \t]*[<"])' + re.escape(old.encode()) + rb"/")
    replacement = rb"\g<1>" + new.encode() + b"/"
    changed: list[Path] = []
    for path in sorted(source_root.rglob("*")):
        if path.suffix not in PATCHED_SUFFIXES or not path.is_file():
            continue
        if _substitute(path, pattern, replacement):
            changed.append(path)
    return changed


def neutralize_cross_compile_probes(configure: Path) -> bool:
    """Turn run-time probes that abort when cross compiling into ``:`` no-ops."""
    if not configure.is_file():
        return False
    return _substitute(configure, _CROSS_COMPILE_PROBE, b":")


def strip_fork_units(makefile: Path) -> bool:
    if not makefile.is_file():
        return False
    return _substitute(makefile, _FORK_UNITS, b"")


def _substitute(path: Path, pattern: re.Pattern[bytes], replacement: bytes) -> bool:
    original = path.read_bytes()
    patched = pattern.sub(replacement, original)
    if patched == original:
        return False
    path.write_bytes(patched)
    return True


__all__ = [
    "PATCH_MARKER",
    "PatchSet",
    "apply_patches",
    "neutralize_cross_compile_probes",
    "rewrite_include_namespace",
    "strip_fork_units",
]
