"""Acquisition of the prebuilt dependency bundle (an XCFramework)."""

from __future__ import annotations

import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import httpx

from xcfbuild.config import validate_url
from xcfbuild.errors import ConfigurationError, IntegrityError
from xcfbuild.fetch.http import download
from xcfbuild.observability import StructuredLogger

BUNDLE_SUFFIX = ".xcframework"


def bundle_name_from_url(url: str) -> str:
    """Strip extensions from the URL's file name until ``.xcframework`` remains.

    ``COpenSSL-static.xcframework.zip`` gives ``COpenSSL-static.xcframework``;
    a name without that extension gets it appended.
    """
    name = PurePosixPath(unquote(urlparse(url).path)).name
    if not name:
        raise ConfigurationError("Dependency URL does not name a file.", context={"url": url})
    component = PurePosixPath(name)
    while component.suffix and component.suffix != BUNDLE_SUFFIX:
        component = PurePosixPath(component.stem)
    if component.suffix == BUNDLE_SUFFIX:
        return component.name
    return component.name + BUNDLE_SUFFIX


@dataclass(frozen=True, slots=True)
class DependencySource:
    url: str
    expected_sha256: str | None = None
    skip_existing: bool = False

    def __post_init__(self) -> None:
        validate_url(self.url)

    @property
    def bundle_name(self) -> str:
        return bundle_name_from_url(self.url)

    async def fetch(
        self,
        destination_dir: Path,
        *,
        downloads_dir: Path,
        logger: StructuredLogger,
        client: httpx.AsyncClient | None = None,
    ) -> Path:
        """Make the bundle available at ``destination_dir / bundle_name`` and return that path."""
        destination = destination_dir / self.bundle_name
        parsed = urlparse(self.url)
        local_source = Path(unquote(parsed.path)) if parsed.scheme == "file" else None

        if local_source is not None and local_source.resolve() == destination.resolve():
            if not local_source.is_dir():
                raise ConfigurationError(
                    "Dependency bundle path points at the destination but is not a directory.",
                    context={"path": str(local_source)},
                )
            return destination

        if self.skip_existing and destination.exists():
            logger.log(
                operation="fetch-dependency",
                message=f"Skipping creation of {destination} because it already exists",
            )
            return destination

        destination_dir.mkdir(parents=True, exist_ok=True)
        shutil.rmtree(destination, ignore_errors=True)

        if local_source is not None and local_source.is_dir():
            logger.log(
                operation="fetch-dependency",
                message=f"Copying dependency bundle from {local_source}",
            )
            shutil.copytree(local_source, destination, symlinks=True)
        else:
            archive = downloads_dir / PurePosixPath(unquote(parsed.path)).name
            logger.log(
                operation="fetch-dependency",
                message=f"Downloading dependency from {self.url}",
            )
            await download(self.url, archive, sha256=self.expected_sha256, client=client)
            logger.log(operation="fetch-dependency", message=f"Unarchiving {archive}")
            _extract_zip(archive, destination_dir)

        if not destination.is_dir():
            raise IntegrityError(
                "Extracted dependency bundle not found.",
                hint="The archive must contain the bundle directory at its root.",
                context={"expected": str(destination)},
            )
        return destination


def _extract_zip(archive: Path, destination_dir: Path) -> None:
    root = destination_dir.resolve()
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                if not (destination_dir / member).resolve().is_relative_to(root):
                    raise IntegrityError(
                        "Dependency archive attempted to escape its destination.",
                        context={"archive": str(archive), "member": member},
                    )
            zf.extractall(destination_dir)
    except zipfile.BadZipFile as exc:
        raise IntegrityError(
            "Dependency archive is not a valid zip file.",
            context={"archive": str(archive)},
        ) from exc


__all__ = ["DependencySource", "bundle_name_from_url"]
