"""Source tarball acquisition and extraction."""

from __future__ import annotations

import tarfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx

from xcfbuild.config import validate_url
from xcfbuild.errors import IntegrityError
from xcfbuild.fetch.http import checksum_matches, download, file_sha256
from xcfbuild.observability import StructuredLogger


@dataclass(frozen=True, slots=True)
class SourceTarball:
    """A downloaded source tarball, extracted once per target."""

    path: Path
    sha256: str

    def extract(self, destination: Path) -> Path:
        """Extract into *destination* and return the tarball's root directory.

        Extraction is skipped when the root directory already exists so that
        a patched tree is never overwritten by pristine sources.
        """
        destination.mkdir(parents=True, exist_ok=True)
        with tarfile.open(self.path, "r:*") as tar:
            root = _single_root(tar, self.path)
            extracted = destination / root
            if not extracted.exists():
                tar.extractall(destination, filter="data")
        return extracted


async def fetch_tarball(
    url: str,
    downloads_dir: Path,
    *,
    sha256: str | None,
    logger: StructuredLogger,
    client: httpx.AsyncClient | None = None,
) -> SourceTarball:
    """Reuse a previously downloaded tarball if it passes the checksum, else download it."""
    validate_url(url)
    local_path = downloads_dir / PurePosixPath(urlparse(url).path).name
    if local_path.exists() and checksum_matches(local_path, sha256):
        logger.log(operation="fetch", message=f"Reusing downloaded tarball at {local_path}")
    else:
        logger.log(operation="fetch", message=f"Downloading tarball from {url}")
        await download(url, local_path, sha256=sha256, client=client)
        logger.log(operation="fetch", message="Tarball downloaded")
    return SourceTarball(path=local_path, sha256=file_sha256(local_path))


def _single_root(tar: tarfile.TarFile, path: Path) -> str:
    roots = {PurePosixPath(member.name).parts[0] for member in tar.getmembers() if member.name}
    roots.discard(".")
    if len(roots) != 1:
        raise IntegrityError(
            "Source tarball must contain exactly one top-level directory.",
            context={"path": str(path), "roots": ", ".join(sorted(roots))},
        )
    return roots.pop()


__all__ = ["SourceTarball", "fetch_tarball"]
