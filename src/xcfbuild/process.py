"""External tool execution.

Every invocation receives an explicit working directory and environment;
the process-wide working directory is never changed, which keeps parallel
target builds independent.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .errors import ConfigurationError, ToolchainError
from .observability import OutputObserver


class ToolRunner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        observer: OutputObserver | None = None,
    ) -> str:
        """Run *argv* to completion and return its combined output.

        Raises :class:`ToolchainError` on a non-zero exit status.
        """


@dataclass(slots=True)
class SubprocessRunner:
    """Runs tools on the host, streaming combined output line by line."""

    base_env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        observer: OutputObserver | None = None,
    ) -> str:
        command = tuple(str(part) for part in argv)
        full_env = dict(self.base_env)
        full_env.update(env or {})
        try:
            process = subprocess.Popen(
                command,
                cwd=str(cwd),
                env=full_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            raise ToolchainError(
                f"Unable to start `{command[0]}`.",
                argv=command,
                output=str(exc),
                hint="Ensure the Xcode command line tools are installed.",
                context={"cwd": str(cwd)},
            ) from exc

        lines: list[str] = []
        assert process.stdout is not None
        with process.stdout:
            for line in process.stdout:
                lines.append(line)
                if observer is not None:
                    observer(line)
        returncode = process.wait()
        output = "".join(lines)
        if returncode != 0:
            raise ToolchainError(
                f"`{os.path.basename(command[0])}` failed.",
                argv=command,
                returncode=returncode,
                output=output,
                hint="Inspect the tool output above.",
                context={"cwd": str(cwd)},
            )
        return output


def developer_dir(runner: ToolRunner, *, cwd: Path) -> Path:
    """Return the active Xcode developer directory (``xcode-select -print-path``)."""
    output = runner.run(["xcode-select", "-print-path"], cwd=cwd).strip()
    if not output:
        raise ConfigurationError(
            "xcode-select returned an empty developer directory.",
            hint="Run `xcode-select --switch` to select an Xcode installation.",
        )
    return Path(output)


__all__ = ["SubprocessRunner", "ToolRunner", "developer_dir"]
