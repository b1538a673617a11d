from __future__ import annotations

from pathlib import Path

import allure
import pytest

from taskweave.output import OutputRenderer, Verbosity

pytestmark = [
    allure.epic("Task Orchestration"),
    allure.feature("Terminal Output"),
]


def _render(verbosity: Verbosity) -> list[tuple[str, bool]]:
    lines: list[tuple[str, bool]] = []
    renderer = OutputRenderer(verbosity, echo=lambda line, err=False: lines.append((line, err)))
    renderer.task_started("demo", Path("/tmp/out"))
    renderer.file_created(Path("/tmp/out/a.txt"))
    renderer.command_summary("SetCommand", references=1, elapsed_seconds=0.01)
    renderer.progress("SetCommand value=x")
    renderer.error("boom")
    return lines


def test_quiet_shows_lifecycle_files_and_errors() -> None:
    lines = _render(Verbosity.QUIET)

    assert len(lines) == 3
    assert lines[-1][1] is True
    assert "boom" in lines[-1][0]


def test_summary_adds_command_summaries() -> None:
    lines = _render(Verbosity.SUMMARY)

    assert len(lines) == 4
    assert any("SetCommand: 1 reference(s)" in line for line, _ in lines)


def test_verbose_adds_progress() -> None:
    lines = _render(Verbosity.VERBOSE)

    assert len(lines) == 5
    assert any("SetCommand value=x" in line for line, _ in lines)


def test_parse_verbosity() -> None:
    assert Verbosity.parse(None) is Verbosity.SUMMARY
    assert Verbosity.parse(None, Verbosity.QUIET) is Verbosity.QUIET
    assert Verbosity.parse(" Verbose ") is Verbosity.VERBOSE
    with pytest.raises(ValueError, match="Unsupported verbosity"):
        Verbosity.parse("loud")
