"""Public package entrypoint for the XCFramework builder."""

from .config import BuildConfig
from .context import BuildContext
from .errors import (
    AdvisoryWarning,
    ConfigurationError,
    ConsistencyError,
    IntegrityError,
    ToolchainError,
    XcfBuildError,
)
from .layout import BuildLayout
from .manifest import DependencyMap, load_dependency_map
from .models import (
    BuildArtifact,
    MergedPlatformArtifact,
    PlatformGroup,
    TargetBuild,
    TargetState,
    TargetTriple,
)
from .observability import StructuredLogger
from .pipeline import PipelineResult, run_pipeline

__all__ = [
    "AdvisoryWarning",
    "BuildArtifact",
    "BuildConfig",
    "BuildContext",
    "BuildLayout",
    "ConfigurationError",
    "ConsistencyError",
    "DependencyMap",
    "IntegrityError",
    "MergedPlatformArtifact",
    "PipelineResult",
    "PlatformGroup",
    "StructuredLogger",
    "TargetBuild",
    "TargetState",
    "TargetTriple",
    "ToolchainError",
    "XcfBuildError",
    "load_dependency_map",
    "run_pipeline",
]
