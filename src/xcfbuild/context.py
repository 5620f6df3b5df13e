"""Per-run context shared read-only by every stage."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .config import BuildConfig
from .layout import BuildLayout
from .observability import StructuredLogger
from .process import SubprocessRunner, ToolRunner, developer_dir


@dataclass(frozen=True, slots=True)
class BuildContext:
    config: BuildConfig
    layout: BuildLayout
    runner: ToolRunner
    developer_dir: Path
    jobs: int
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    @classmethod
    def create(
        cls,
        config: BuildConfig,
        *,
        runner: ToolRunner | None = None,
        logger: StructuredLogger | None = None,
        developer_dir_path: Path | None = None,
    ) -> BuildContext:
        """Build the context once at startup; the developer dir is queried here."""
        layout = BuildLayout(
            work_dir=config.work_dir,
            result_dir=config.result_root,
            product_name=config.product_name,
        )
        tool_runner = runner if runner is not None else SubprocessRunner()
        if developer_dir_path is None:
            developer_dir_path = developer_dir(tool_runner, cwd=Path.cwd())
        return cls(
            config=config,
            layout=layout,
            runner=tool_runner,
            developer_dir=developer_dir_path,
            jobs=config.jobs or os.cpu_count() or 1,
            logger=logger if logger is not None else StructuredLogger(),
        )


__all__ = ["BuildContext"]
