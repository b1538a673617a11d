from __future__ import annotations

import logging
import sys
from pathlib import Path

import allure
import pytest

from taskweave.flow.errors import DuplicateTaskError, UnknownTaskError
from taskweave.tasks.base import TaskArgs
from taskweave.tasks.builtin import register_builtin_tasks
from taskweave.tasks.registry import TaskRegistry, discover_tasks

pytestmark = [
    allure.epic("Task Orchestration"),
    allure.feature("Registry & Discovery"),
]

_DEMO_MODULE = '''
from taskweave.commands.text import SetCommand
from taskweave.tasks.base import Task


class DemoTask(Task):
    name = "{name}"
    description = "Demo task"

    def execute(self, args, flow):
        outcome = self.begin(flow)
        outcome.outputs.extend(self.attempt(flow, SetCommand("demo", token="demo"), outcome))
        return outcome


def register(registry):
    registry.add(DemoTask)
'''


def _write(directory: Path, file_name: str, source: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / file_name
    path.write_text(source, "utf-8")
    return path


def test_builtin_tasks_are_registered() -> None:
    registry = TaskRegistry()
    register_builtin_tasks(registry)

    assert registry.names() == ["agent", "clean", "load", "prompt", "shell", "store"]
    assert registry.create("store").description


def test_unknown_task_lists_available_names() -> None:
    registry = TaskRegistry()
    register_builtin_tasks(registry)

    with pytest.raises(UnknownTaskError) as error:
        registry.create("nope")

    assert str(error.value) == (
        "Unknown task: nope. Available tasks: agent, clean, load, prompt, shell, store"
    )


def test_duplicate_registration_is_rejected() -> None:
    registry = TaskRegistry()
    register_builtin_tasks(registry)

    with pytest.raises(DuplicateTaskError, match="'store'"):
        register_builtin_tasks(registry)


def test_discovers_modules_that_register_tasks(tmp_path: Path) -> None:
    task_dir = tmp_path / "tasks"
    _write(task_dir, "demo.py", _DEMO_MODULE.format(name="demo"))
    _write(task_dir, "_helpers.py", "raise RuntimeError('never imported')\n")
    registry = TaskRegistry()

    loaded = discover_tasks([task_dir, tmp_path / "missing"], registry)

    assert [path.name for path in loaded] == ["demo.py"]
    assert "demo" in registry
    assert registry.origin("demo") == str(task_dir / "demo.py")


def test_malformed_module_is_skipped_and_others_stay_available(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    task_dir = tmp_path / "tasks"
    _write(task_dir, "a_broken.py", "def register(registry):\n    return (\n")
    _write(task_dir, "b_no_register.py", "VALUE = 1\n")
    _write(task_dir, "c_raises.py", "def register(registry):\n    raise KeyError('bad')\n")
    _write(task_dir, "d_demo.py", _DEMO_MODULE.format(name="demo"))
    registry = TaskRegistry()

    with caplog.at_level(logging.WARNING, logger="taskweave.tasks.registry"):
        loaded = discover_tasks([task_dir], registry)

    assert [path.name for path in loaded] == ["d_demo.py"]
    assert registry.names() == ["demo"]
    assert "a_broken.py" in caplog.text
    assert "no register(registry) function" in caplog.text
    assert "register() failed" in caplog.text
    prefix = "taskweave.tasks._discovered.tasks."
    assert f"{prefix}c_raises" not in sys.modules
    assert f"{prefix}b_no_register" not in sys.modules
    assert f"{prefix}d_demo" in sys.modules


def test_discovered_name_colliding_with_builtin_is_fatal(tmp_path: Path) -> None:
    task_dir = tmp_path / "tasks"
    _write(task_dir, "store.py", _DEMO_MODULE.format(name="store"))
    registry = TaskRegistry()
    register_builtin_tasks(registry)

    with pytest.raises(DuplicateTaskError, match="already registered"):
        discover_tasks([task_dir], registry)


def test_collision_across_directories_is_fatal(tmp_path: Path) -> None:
    _write(tmp_path / "project", "demo.py", _DEMO_MODULE.format(name="demo"))
    _write(tmp_path / "user", "demo.py", _DEMO_MODULE.format(name="demo"))

    with pytest.raises(DuplicateTaskError):
        discover_tasks([tmp_path / "project", tmp_path / "user"], TaskRegistry())


def test_task_args_split_values_and_options() -> None:
    args = TaskArgs.from_argv(
        ["hello", "--days", "3", "--dry-run", "--mode=fast", "world", "--", "--literal"],
        token="t",
    )

    assert args.values == ("hello", "world", "--literal")
    assert args.options == {"days": "3", "dry-run": True, "mode": "fast"}
    assert args.token == "t"
    assert args.option("missing", 7) == 7
