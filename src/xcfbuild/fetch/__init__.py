"""Integrity-checked retrieval of the source tarball and the dependency bundle."""

from .dependency import DependencySource, bundle_name_from_url
from .http import checksum_matches, download, file_sha256
from .tarball import SourceTarball, fetch_tarball

__all__ = [
    "DependencySource",
    "SourceTarball",
    "bundle_name_from_url",
    "checksum_matches",
    "download",
    "fetch_tarball",
    "file_sha256",
]
