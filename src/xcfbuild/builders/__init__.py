"""Per-target cross-compilation."""

from .collect import collect_artifact
from .flags import Toolchain, compiler_flags, platform_flags, sysroot, target_toolchain
from .patches import PATCH_MARKER, PatchSet, apply_patches
from .target import TargetBuilder

__all__ = [
    "PATCH_MARKER",
    "PatchSet",
    "TargetBuilder",
    "Toolchain",
    "apply_patches",
    "collect_artifact",
    "compiler_flags",
    "platform_flags",
    "sysroot",
    "target_toolchain",
]
