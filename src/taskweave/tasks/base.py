"""Task contract: named units of work that sequence commands against a flow."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskweave.flow.errors import CommandExecutionError
from taskweave.flow.references import Reference, TaskLog

if TYPE_CHECKING:
    from taskweave.commands.base import Command
    from taskweave.flow.context import FlowContext

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskArgs:
    """Arguments handed to ``Task.execute``.

    ``values`` are the positional arguments after the task name, ``refs`` the
    artifact files selected with ``--ref`` and ``options`` any ``--key value``
    pairs the CLI forwarded.
    """

    values: tuple[str, ...] = ()
    token: str | None = None
    refs: tuple[Path, ...] = ()
    options: dict[str, str | bool] = field(default_factory=dict)

    @classmethod
    def from_argv(
        cls,
        argv: Sequence[str],
        *,
        token: str | None = None,
        refs: Sequence[Path] = (),
    ) -> TaskArgs:
        """Split forwarded CLI arguments into positional values and options.

        ``--key value`` and ``--key=value`` become options; a ``--key`` followed
        by another option or nothing is a flag set to ``True``. Everything after
        a bare ``--`` is positional.
        """

        values: list[str] = []
        options: dict[str, str | bool] = {}
        items = list(argv)
        index = 0
        while index < len(items):
            item = items[index]
            index += 1
            if item == "--":
                values.extend(items[index:])
                break
            if not item.startswith("--") or item == "-":
                values.append(item)
                continue
            key, sep, inline = item[2:].partition("=")
            if sep:
                options[key] = inline
            elif index < len(items) and not items[index].startswith("--"):
                options[key] = items[index]
                index += 1
            else:
                options[key] = True
        return cls(values=tuple(values), token=token, refs=tuple(refs), options=options)

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)


@dataclass(slots=True)
class TaskOutcome:
    """Result of one task execution.

    ``logs`` is the flow's live run log, so entries recorded before a failed
    command stay visible when the task records the error and continues.
    """

    id: str
    name: str
    logs: list[TaskLog] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    outputs: list[Reference] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class Task(ABC):
    """Base class for tasks.

    Subclasses set ``name`` (and optionally ``description`` and ``examples``)
    and implement ``execute``, typically::

        def execute(self, args, flow):
            outcome = self.begin(flow)
            refs = self.attempt(flow, SetCommand("hello", token="greeting"), outcome)
            outcome.outputs.extend(refs)
            return outcome
    """

    name: str = ""
    description: str = ""
    examples: tuple[str, ...] = ()

    @abstractmethod
    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        """Run the task once against a fresh flow context."""

    def begin(self, flow: FlowContext) -> TaskOutcome:
        return TaskOutcome(id=flow.execution_id, name=self.name, logs=flow.logs)

    def attempt(
        self,
        flow: FlowContext,
        command: Command,
        outcome: TaskOutcome,
    ) -> list[Reference]:
        """Run ``command``; a command failure is recorded on ``outcome`` instead of raised."""

        try:
            return flow.run(command)
        except CommandExecutionError as error:
            message = str(error)
            outcome.errors.append(message)
            logger.warning("Task %s: command %s failed: %s", self.name, error.command, message)
            flow.renderer.error(message)
            return []
