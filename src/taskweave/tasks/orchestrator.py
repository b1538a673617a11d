"""Task invocation: one fresh flow context and execution directory per run."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from taskweave.config import Settings
from taskweave.flow.context import FlowContext
from taskweave.flow.isolation import ExecutionDirectory
from taskweave.output import OutputRenderer, Verbosity
from taskweave.tasks.base import TaskArgs, TaskOutcome
from taskweave.tasks.builtin import register_builtin_tasks
from taskweave.tasks.registry import TaskRegistry, discover_tasks

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    """Invocation lifecycle states."""

    DISCOVERED = "discovered"
    CONTEXT_BUILT = "context_built"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class InvocationResult:
    """What happened to one task invocation."""

    task_name: str
    state: TaskState
    outcome: TaskOutcome | None = None
    error: str | None = None
    output_dir: Path | None = None
    elapsed_seconds: float = 0.0
    transitions: list[TaskState] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.outcome is not None and bool(self.outcome.errors)


class TaskOrchestrator:
    """Runs registered tasks.

    ``Failed`` is reached only when ``execute`` raises; an outcome carrying
    recorded errors is still ``Completed``. The flow context is always closed.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        settings: Settings,
        *,
        echo: Callable[..., None] | None = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self._echo = echo

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        echo: Callable[..., None] | None = None,
    ) -> TaskOrchestrator:
        """Registry with built-in tasks plus modules discovered in ``settings.task_dirs``."""

        registry = TaskRegistry()
        register_builtin_tasks(registry)
        discover_tasks(settings.task_dirs, registry)
        return cls(registry, settings, echo=echo)

    def invoke(
        self,
        name: str,
        args: TaskArgs | None = None,
        verbosity: Verbosity | str | None = None,
    ) -> InvocationResult:
        """Run task ``name`` once; raises ``UnknownTaskError`` for unregistered names."""

        task = self.registry.create(name)
        args = args or TaskArgs()
        result = InvocationResult(task_name=name, state=TaskState.DISCOVERED)
        result.transitions.append(TaskState.DISCOVERED)

        level = Verbosity.parse(verbosity, Verbosity.parse(self.settings.default_verbosity))
        renderer = (
            OutputRenderer(level, echo=self._echo) if self._echo else OutputRenderer(level)
        )
        directory = ExecutionDirectory(self.settings.output_root, name)
        flow = FlowContext(
            directory,
            cwd=self.settings.cwd,
            settings=self.settings,
            renderer=renderer,
        )
        _advance(result, TaskState.CONTEXT_BUILT)

        started = time.monotonic()
        renderer.task_started(name, directory.path)
        logger.info("Task %s started (execution %s)", name, flow.execution_id)
        _advance(result, TaskState.EXECUTING)
        try:
            outcome = task.execute(args, flow)
            if not isinstance(outcome, TaskOutcome):
                raise TypeError(
                    f"Task {name} returned {type(outcome).__name__}, expected TaskOutcome",
                )
        except Exception as error:
            logger.exception("Task %s failed", name)
            result.error = str(error) or type(error).__name__
            renderer.task_failed(name, result.error)
            _advance(result, TaskState.FAILED)
        else:
            result.outcome = outcome
            renderer.task_finished(
                name,
                elapsed_seconds=time.monotonic() - started,
                errors=len(outcome.errors),
            )
            logger.info(
                "Task %s completed: %d log entries, %d error(s)",
                name,
                len(outcome.logs),
                len(outcome.errors),
            )
            _advance(result, TaskState.COMPLETED)
        finally:
            flow.close()

        result.elapsed_seconds = time.monotonic() - started
        result.output_dir = directory.path if directory.created else None
        return result


def _advance(result: InvocationResult, state: TaskState) -> None:
    result.state = state
    result.transitions.append(state)
