import io
import json
from pathlib import Path

import pytest

from xcfbuild.errors import HeaderDivergenceWarning
from xcfbuild.observability import StructuredLogger


def test_records_are_scoped_by_target() -> None:
    logger = StructuredLogger()
    logger.log(operation="build", message="configure", target="iOS-iOS-arm64", stage="configured")
    logger.log(operation="build", message="configure", target="macOS-macOS-arm64")
    logger.log(operation="pipeline", message="start")

    records = logger.records_for_target("iOS-iOS-arm64")

    assert records == [
        {
            "level": "info",
            "operation": "build",
            "target": "iOS-iOS-arm64",
            "stage": "configured",
            "message": "configure",
        }
    ]


def test_advise_records_and_emits_the_warning() -> None:
    logger = StructuredLogger()

    with pytest.warns(HeaderDivergenceWarning, match="differs"):
        logger.advise(
            HeaderDivergenceWarning,
            "Header ldap_features.h differs",
            operation="merge-headers",
            extra={"header": "ldap_features.h"},
        )

    (record,) = logger.warning_records()
    assert record["extra"] == {"category": "HeaderDivergenceWarning", "header": "ldap_features.h"}


def test_output_observer_logs_lines_at_debug_level() -> None:
    logger = StructuredLogger()
    observe = logger.output_observer(target="iOS-iOS-arm64", stage="build")

    observe("cc -c bind.c\n")

    (record,) = logger.output_for("iOS-iOS-arm64")
    assert record["level"] == "debug"
    assert record["message"] == "cc -c bind.c"
    assert record["operation"] == "process-output"
    assert logger.records == []
    assert logger.records_for_target("iOS-iOS-arm64") == [record]


def test_stream_echo_respects_level() -> None:
    stream = io.StringIO()
    logger = StructuredLogger(stream=stream)

    logger.log(operation="build", message="hidden", level="debug")
    logger.log(operation="build", message="shown", target="iOS-iOS-arm64")

    assert stream.getvalue() == "INFO    [iOS-iOS-arm64] shown\n"


def test_json_lines_export(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(operation="pipeline", message="start", extra={"path": Path("/tmp/work")})

    output = logger.to_json_lines(tmp_path / "logs" / "run.jsonl")

    (line,) = output.read_text(encoding="utf-8").splitlines()
    assert json.loads(line)["extra"] == {"path": "/tmp/work"}


def test_tool_output_keeps_a_bounded_tail_and_streams_everything() -> None:
    sink = io.StringIO()
    logger = StructuredLogger(sink=sink, output_tail=2)
    observe = logger.output_observer(target="iOS-iOS-arm64", stage="build")

    logger.log(operation="build", message="start", target="iOS-iOS-arm64")
    for index in range(5):
        observe(f"line {index}\n")

    assert [record["message"] for record in logger.output_for("iOS-iOS-arm64")] == [
        "line 3",
        "line 4",
    ]
    assert len(logger.records) == 1
    streamed = [json.loads(line)["message"] for line in sink.getvalue().splitlines()]
    assert streamed == ["start", "line 0", "line 1", "line 2", "line 3", "line 4"]
