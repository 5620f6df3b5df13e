"""Header reconciliation across the architectures of one platform group.

Headers are expected to be identical for every architecture, but generated
ones (``ldap_features.h``, ``lber_types.h``) may not be. The content of the
primary architecture, first in resolution order, wins; divergences are
reported and never fail the merge.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from xcfbuild.errors import HeaderDivergenceWarning
from xcfbuild.models import BuildArtifact, PlatformGroup
from xcfbuild.observability import StructuredLogger

INCLUDE_ROOT = PurePosixPath("include")

_INCLUDE_DIRECTIVE = re.compile(
    rb'^([ \t]*#[ \t]*(?:include|import)[ \t]*)[<"]([^>"\n]+)[>"]',
    re.M,
)


@dataclass(frozen=True, slots=True)
class HeaderSet:
    """Reconciled headers keyed by their path relative to ``include/``."""

    contents: dict[PurePosixPath, bytes]
    divergences: tuple[PurePosixPath, ...] = ()

    @property
    def paths(self) -> tuple[PurePosixPath, ...]:
        return tuple(sorted(self.contents))


def header_key(relative: Path) -> PurePosixPath:
    path = PurePosixPath(relative.as_posix())
    if path.is_relative_to(INCLUDE_ROOT):
        return path.relative_to(INCLUDE_ROOT)
    return PurePosixPath(path.name)


def reconcile_headers(
    group: PlatformGroup,
    artifacts: Sequence[BuildArtifact],
    *,
    product_name: str,
    logger: StructuredLogger,
) -> HeaderSet:
    ordered = sorted(artifacts, key=lambda artifact: artifact.target.arch)
    contents: dict[PurePosixPath, bytes] = {}
    primary: dict[PurePosixPath, str] = {}
    divergences: list[PurePosixPath] = []

    for artifact in ordered:
        arch = artifact.target.arch
        for relative in artifact.headers:
            key = header_key(relative)
            data = (artifact.install_dir / relative).read_bytes()
            if key not in contents:
                contents[key] = data
                primary[key] = arch
            elif contents[key] != data and key not in divergences:
                divergences.append(key)
                logger.advise(
                    HeaderDivergenceWarning,
                    f"Header {key} differs between {primary[key]} and {arch}; "
                    f"keeping the {primary[key]} version",
                    operation="merge-headers",
                    stage=str(group),
                    extra={"header": str(key), "primary": primary[key], "other": arch},
                )

    names = {str(key) for key in contents}
    rewritten = {
        key: rewrite_includes(data, names, product_name) for key, data in contents.items()
    }
    umbrella = PurePosixPath(f"{product_name}.h")
    if umbrella not in rewritten:
        rewritten[umbrella] = umbrella_header(product_name, sorted(contents))
    return HeaderSet(contents=rewritten, divergences=tuple(divergences))


def rewrite_includes(data: bytes, names: set[str], product_name: str) -> bytes:
    """Point includes of headers in *names* at ``<Product/...>``."""
    prefix = product_name.encode()

    def substitute(match: re.Match[bytes]) -> bytes:
        included = match.group(2).decode("utf-8", errors="replace")
        if included not in names:
            return match.group(0)
        return match.group(1) + b"<" + prefix + b"/" + match.group(2) + b">"

    return _INCLUDE_DIRECTIVE.sub(substitute, data)


def umbrella_header(product_name: str, headers: Sequence[PurePosixPath]) -> bytes:
    guard = f"{product_name.upper()}_H"
    lines = [f"#ifndef {guard}", f"#define {guard}", ""]
    lines += [f"#include <{product_name}/{header}>" for header in headers]
    lines += ["", f"#endif /* {guard} */", ""]
    return "\n".join(lines).encode()


def write_headers(headers: HeaderSet, destination: Path, *, skip_existing: bool = False) -> Path:
    if skip_existing and destination.exists():
        return destination
    shutil.rmtree(destination, ignore_errors=True)
    destination.mkdir(parents=True, exist_ok=True)
    for key in headers.paths:
        path = destination / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(headers.contents[key])
    return destination


__all__ = [
    "HeaderSet",
    "header_key",
    "reconcile_headers",
    "rewrite_includes",
    "umbrella_header",
    "write_headers",
]
