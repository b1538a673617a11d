"""Shared test fixtures."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from taskweave.config import Settings
from taskweave.flow.context import FlowContext
from taskweave.flow.isolation import ExecutionDirectory
from taskweave.output import OutputRenderer, Verbosity


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch) -> Path:
    """Point HOME at a scratch directory and drop ambient TASKWEAVE_* variables."""

    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in list(os.environ):
        if name.startswith("TASKWEAVE_"):
            monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture()
def settings(project_dir: Path) -> Settings:
    return Settings(cwd=project_dir, output_root=project_dir / "logs")


@pytest.fixture()
def echo_lines() -> list[str]:
    return []


@pytest.fixture()
def flow(settings: Settings, echo_lines: list[str]):
    renderer = OutputRenderer(Verbosity.VERBOSE, echo=lambda line, **_: echo_lines.append(line))
    context = FlowContext(
        ExecutionDirectory(settings.output_root, "test"),
        cwd=settings.cwd,
        settings=settings,
        renderer=renderer,
    )
    yield context
    context.close()


@pytest.fixture()
def python_script(tmp_path: Path):
    """Write a Python script and return the argv prefix that runs it."""

    def _write(name: str, body: str) -> list[str]:
        path = tmp_path / "scripts" / f"{name}.py"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body.strip() + "\n", "utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return [sys.executable, str(path)]

    return _write
