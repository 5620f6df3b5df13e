"""Structured logging and observability helpers.

Tool output is the bulk of a build log, so only the last ``output_tail``
lines of each target are kept in memory. A ``sink`` receives every record,
tool output included, as one JSON line as soon as it is logged.
"""

from __future__ import annotations

import json
import threading
import warnings
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from .errors import AdvisoryWarning

OutputObserver = Callable[[str], None]

OUTPUT_OPERATION = "process-output"
DEFAULT_OUTPUT_TAIL = 200


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)
    stream: TextIO | None = None
    echo_level: str = "info"
    sink: TextIO | None = None
    output_tail: int = DEFAULT_OUTPUT_TAIL
    output: dict[str | None, deque[dict[str, Any]]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def log(
        self,
        *,
        operation: str,
        message: str,
        target: str | None = None,
        stage: str | None = None,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "target": target,
            "stage": stage,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        with self._lock:
            if operation == OUTPUT_OPERATION:
                tail = self.output.get(target)
                if tail is None:
                    tail = self.output[target] = deque(maxlen=self.output_tail)
                tail.append(record)
            else:
                self.records.append(record)
            if self.sink is not None:
                self.sink.write(_json_line(record) + "\n")
            if self.stream is not None and _LEVELS[level] >= _LEVELS[self.echo_level]:
                scope = f" [{target}]" if target else ""
                self.stream.write(f"{level.upper():<7}{scope} {message}\n")
                self.stream.flush()

    def advise(
        self,
        category: type[AdvisoryWarning],
        message: str,
        *,
        operation: str,
        target: str | None = None,
        stage: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Record *message* as a warning and emit it through :mod:`warnings`."""
        self.log(
            operation=operation,
            message=message,
            target=target,
            stage=stage,
            level="warning",
            extra={"category": category.__name__, **(extra or {})},
        )
        warnings.warn(message, category, stacklevel=3)

    def output_observer(self, *, target: str | None, stage: str) -> OutputObserver:
        """Return a callback that logs each line of a tool's output."""

        def observe(line: str) -> None:
            self.log(
                operation=OUTPUT_OPERATION,
                message=line.rstrip("\n"),
                target=target,
                stage=stage,
                level="debug",
            )

        return observe

    def output_for(self, target: str | None) -> list[dict[str, Any]]:
        """Retained tool output lines of *target*, oldest first."""
        with self._lock:
            return list(self.output.get(target, ()))

    def records_for_target(self, target: str) -> list[dict[str, Any]]:
        """Records of *target*, followed by its retained tool output."""
        with self._lock:
            records = [record for record in self.records if record.get("target") == target]
            return records + list(self.output.get(target, ()))

    def warning_records(self) -> list[dict[str, Any]]:
        with self._lock:
            return [record for record in self.records if record["level"] == "warning"]

    def to_json_lines(self, path: str | Path) -> Path:
        """Write the records and the retained tool output as JSON lines."""
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            retained = [record for tail in self.output.values() for record in tail]
            lines = [_json_line(record) for record in [*self.records, *retained]]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path


def _json_line(record: dict[str, Any]) -> str:
    return json.dumps(record, sort_keys=True, default=str)


_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}

__all__ = [
    "DEFAULT_OUTPUT_TAIL",
    "OUTPUT_OPERATION",
    "OutputObserver",
    "StructuredLogger",
]
