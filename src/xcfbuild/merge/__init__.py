"""Fusion of per-architecture build artifacts into per-platform artifacts."""

from .archives import check_merge_set, combine_archives, fuse_archives
from .dylib import LinkSpec, derive_dynamic_library, install_name
from .engine import MergeEngine, group_artifacts
from .headers import HeaderSet, reconcile_headers, rewrite_includes, write_headers

__all__ = [
    "HeaderSet",
    "LinkSpec",
    "MergeEngine",
    "check_merge_set",
    "combine_archives",
    "derive_dynamic_library",
    "fuse_archives",
    "group_artifacts",
    "install_name",
    "reconcile_headers",
    "rewrite_includes",
    "write_headers",
]
