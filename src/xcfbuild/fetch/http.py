"""Integrity-checked asynchronous download."""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from xcfbuild.errors import IntegrityError

CHUNK_SIZE = 1024 * 1024
DEFAULT_TIMEOUT = 300.0


def file_sha256(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def checksum_matches(path: Path, expected_sha256: str | None) -> bool:
    """``True`` when *path* hashes to *expected_sha256*, or when no hash is expected."""
    if expected_sha256 is None:
        return True
    return file_sha256(path) == expected_sha256.lower()


async def download(
    url: str,
    destination: Path,
    *,
    sha256: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> Path:
    """Download *url* to *destination* in a single attempt.

    A non-success response or a checksum mismatch raises
    :class:`IntegrityError`; the partial file is always removed.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    temp_path = destination.with_name(destination.name + ".part")
    try:
        if urlparse(url).scheme == "file":
            source = _local_path(url)
            if not source.is_file():
                raise IntegrityError("Local download source does not exist.", context={"url": url})
            shutil.copyfile(source, temp_path)
        elif client is not None:
            await _stream_to(client, url, temp_path)
        else:
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT, follow_redirects=True) as owned:
                await _stream_to(owned, url, temp_path)

        if sha256 is not None:
            actual = file_sha256(temp_path)
            if actual != sha256.lower():
                raise IntegrityError(
                    "Downloaded content hash mismatch.",
                    hint="Update the expected checksum or point to a trusted immutable artifact.",
                    context={"url": url, "expected": sha256.lower(), "actual": actual},
                )
        os.replace(temp_path, destination)
    finally:
        temp_path.unlink(missing_ok=True)
    return destination


async def _stream_to(client: httpx.AsyncClient, url: str, path: Path) -> None:
    async with client.stream("GET", url) as response:
        if not response.is_success:
            raise IntegrityError(
                "Download failed.",
                hint="Check the URL; downloads are never retried.",
                context={"url": url, "status": str(response.status_code)},
            )
        with path.open("wb") as fh:
            async for chunk in response.aiter_bytes():
                fh.write(chunk)


def _local_path(url: str) -> Path:
    return Path(unquote(urlparse(url).path))
