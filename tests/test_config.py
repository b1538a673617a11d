from __future__ import annotations

import json
import os
from pathlib import Path

import allure
import pytest

from taskweave.config import Settings

pytestmark = [
    allure.epic("Task Orchestration"),
    allure.feature("Configuration"),
]


def _write_config(root: Path, payload: dict) -> None:
    config_dir = root / ".taskweave"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.json").write_text(json.dumps(payload), "utf-8")


def test_defaults(project_dir: Path, isolated_environment: Path) -> None:
    settings = Settings.load(project_dir)

    assert settings.output_root == project_dir.resolve() / ".taskweave" / "logs"
    assert settings.task_dirs == (
        project_dir.resolve() / ".taskweave" / "tasks",
        isolated_environment / ".taskweave" / "tasks",
    )
    assert settings.default_extension == "txt"
    assert settings.default_verbosity == "summary"
    assert settings.shell.timeout_seconds == 30.0
    assert settings.agents.timeout_seconds == 600.0


def test_project_config_overrides_user_config(
    project_dir: Path,
    isolated_environment: Path,
) -> None:
    _write_config(
        isolated_environment,
        {
            "outputDir": "user-logs",
            "defaultFileExtension": "md",
            "shell": {"executable": "zsh", "timeoutSeconds": 5},
        },
    )
    _write_config(project_dir, {"outputDir": "project-logs", "shell": {"timeoutSeconds": 9}})

    settings = Settings.load(project_dir)

    assert settings.output_root == project_dir.resolve() / "project-logs"
    assert settings.default_extension == "md"
    assert settings.shell.executable == "zsh"
    assert settings.shell.timeout_seconds == 9.0


def test_environment_overrides_files(project_dir: Path, monkeypatch) -> None:
    _write_config(project_dir, {"verbosity": "quiet", "taskDirs": ["tasks"]})
    monkeypatch.setenv("TASKWEAVE_VERBOSITY", "VERBOSE")
    monkeypatch.setenv("TASKWEAVE_TASK_DIRS", os.pathsep.join(["one", "two", "one"]))
    monkeypatch.setenv("TASKWEAVE_AGENT_TIMEOUT_SECONDS", "42")
    monkeypatch.setenv("TASKWEAVE_DEFAULT_EXTENSION", ".log")

    settings = Settings.load(project_dir)

    root = project_dir.resolve()
    assert settings.default_verbosity == "verbose"
    assert settings.task_dirs == (root / "one", root / "two")
    assert settings.agents.timeout_seconds == 42.0
    assert settings.default_extension == "log"


def test_agent_definitions_are_loaded(project_dir: Path) -> None:
    _write_config(
        project_dir,
        {"agents": {"definitions": {"reviewer": {"tool": "claude", "model": "sonnet"}}}},
    )

    settings = Settings.load(project_dir)

    assert settings.agents.definitions["reviewer"]["model"] == "sonnet"


@pytest.mark.parametrize(
    ("payload", "env", "message"),
    [
        ({"verbosity": "loud"}, {}, "Invalid verbosity"),
        ({"taskDirs": "tasks"}, {}, "taskDirs must be a list"),
        ({"shell": []}, {}, "Config section 'shell' must be an object"),
        ({}, {"TASKWEAVE_SHELL_TIMEOUT_SECONDS": "soon"}, "Invalid number"),
        ({}, {"TASKWEAVE_SHELL_TIMEOUT_SECONDS": "0"}, "must be > 0"),
    ],
)
def test_invalid_values_are_rejected(
    project_dir: Path,
    monkeypatch,
    payload: dict,
    env: dict,
    message: str,
) -> None:
    _write_config(project_dir, payload)
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=message):
        Settings.load(project_dir)


def test_malformed_config_file_names_the_file(project_dir: Path) -> None:
    config_dir = project_dir / ".taskweave"
    config_dir.mkdir()
    (config_dir / "config.json").write_text("{not json", "utf-8")

    with pytest.raises(ValueError, match="Invalid JSON in config file"):
        Settings.load(project_dir)
