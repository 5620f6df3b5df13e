"""Assembly of the distributable bundles."""

from .archive import archive_checksum, write_deterministic_zip
from .assembler import PackageAssembler, PackageResult
from .bundle import write_dynamic_subbundle, write_static_subbundle
from .descriptor import BinaryTarget, render_package_descriptor

__all__ = [
    "BinaryTarget",
    "PackageAssembler",
    "PackageResult",
    "archive_checksum",
    "render_package_descriptor",
    "write_deterministic_zip",
    "write_dynamic_subbundle",
    "write_static_subbundle",
]
