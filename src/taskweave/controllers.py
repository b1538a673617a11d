"""CLI controllers: turn parsed command-line input into orchestrator calls."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from taskweave.config import Settings
from taskweave.flow.errors import DuplicateTaskError, UnknownTaskError
from taskweave.flow.isolation import find_latest_artifact
from taskweave.output import Verbosity
from taskweave.tasks.base import TaskArgs
from taskweave.tasks.orchestrator import TaskOrchestrator, TaskState

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_COMPLETED_WITH_ERRORS = 2


@dataclass(slots=True)
class RunTaskCommand:
    """CLI input for one task invocation."""

    task_name: str
    argv: tuple[str, ...]
    token: str | None
    refs: tuple[str, ...]
    verbosity: Verbosity | None
    cwd: Path | None = None


@dataclass(slots=True)
class ListTasksCommand:
    """CLI input for task listing."""

    cwd: Path | None = None


@dataclass(slots=True)
class RunTaskResult:
    """Lines to print after the run and the process exit code."""

    lines: list[str]
    exit_code: int


class TaskCliController:
    """Coordinates task listing and invocation for the CLI."""

    def __init__(self, *, echo: Callable[..., None] | None = None) -> None:
        self._echo = echo

    def run(self, command: RunTaskCommand) -> RunTaskResult:
        try:
            settings = Settings.load(command.cwd)
            orchestrator = TaskOrchestrator.from_settings(settings, echo=self._echo)
            refs = tuple(_resolve_ref(value, settings) for value in command.refs)
        except (ValueError, DuplicateTaskError) as error:
            return RunTaskResult(lines=[f"Error: {error}"], exit_code=EXIT_FAILED)

        args = TaskArgs.from_argv(command.argv, token=command.token, refs=refs)
        try:
            result = orchestrator.invoke(command.task_name, args, command.verbosity)
        except UnknownTaskError as error:
            return RunTaskResult(lines=[str(error)], exit_code=EXIT_FAILED)

        lines: list[str] = []
        if result.output_dir is not None:
            lines.append(f"Output: {result.output_dir}")
        if result.state is TaskState.FAILED:
            return RunTaskResult(lines=lines, exit_code=EXIT_FAILED)
        if result.has_errors:
            return RunTaskResult(lines=lines, exit_code=EXIT_COMPLETED_WITH_ERRORS)
        return RunTaskResult(lines=lines, exit_code=EXIT_OK)

    def list_tasks(self, command: ListTasksCommand) -> list[str]:
        settings = Settings.load(command.cwd)
        orchestrator = TaskOrchestrator.from_settings(settings)
        registry = orchestrator.registry
        lines = [f"Tasks ({len(registry)}):"]
        for name in registry.names():
            task = registry.create(name)
            lines.append(f"  {name:<16} {task.description or '-'}")
            lines.extend(f"      e.g. {example}" for example in task.examples)
        lines.append(f"Output root: {settings.output_root}")
        return lines


def _resolve_ref(value: str, settings: Settings) -> Path:
    """A ``--ref`` is a file path, or the token of an artifact from an earlier execution."""

    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = settings.cwd / candidate
    if candidate.is_file():
        return candidate
    latest = find_latest_artifact(settings.output_root, value)
    if latest is None:
        raise ValueError(f"Reference not found: {value}")
    logger.debug("Resolved --ref %s to %s", value, latest)
    return latest
