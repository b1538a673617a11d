"""Tasks shipped with taskweave."""

from __future__ import annotations

import logging
import shutil
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from taskweave.commands.agents import AgentCommand, AgentConfig, AgentTool, load_agent_config
from taskweave.commands.base import TransformCommand
from taskweave.commands.io import ReadCommand, resolve_path
from taskweave.commands.prompt import PromptCommand
from taskweave.commands.shell import ShellCommand
from taskweave.commands.text import SetCommand
from taskweave.flow.isolation import list_executions
from taskweave.flow.references import Reference
from taskweave.flow.timestamps import utc_now
from taskweave.tasks.base import Task, TaskArgs, TaskOutcome

if TYPE_CHECKING:
    from datetime import datetime

    from taskweave.flow.context import FlowContext
    from taskweave.tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7


class StoreTask(Task):
    name = "store"
    description = "Store the given text as an artifact."
    examples = ("taskweave run store 'Hello, world' --token greeting",)

    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        if not args.values:
            raise ValueError("store requires a value to store")
        outcome = self.begin(flow)
        value = " ".join(args.values)
        outcome.outputs.extend(self.attempt(flow, SetCommand(value, token=args.token), outcome))
        return outcome


class LoadTask(Task):
    name = "load"
    description = "Load a text file into the execution as an artifact."
    examples = (
        "taskweave run load ./notes.md",
        "taskweave run load ./notes.md --token notes",
    )

    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        if not args.values:
            raise ValueError("load requires a file path")
        path = resolve_path(args.values[0], flow.cwd)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {args.values[0]}")
        outcome = self.begin(flow)
        outcome.outputs.extend(self.attempt(flow, ReadCommand(path, token=args.token), outcome))
        if outcome.outputs:
            content = flow.get(outcome.outputs[0])
            flow.renderer.progress(
                f"Loaded {path.name}: {_format_size(path.stat().st_size)}, {len(content)} chars",
            )
        return outcome


class ShellTask(Task):
    name = "shell"
    description = "Run a shell script and store its output."
    examples = (
        "taskweave run shell 'git log --oneline -5' --token recent",
        "taskweave run shell 'ls -la' --timeout 5",
    )

    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        if not args.values:
            raise ValueError("shell requires a script")
        timeout = args.option("timeout")
        command = ShellCommand(
            " ".join(args.values),
            token=args.token,
            timeout_seconds=float(timeout) if timeout is not None else None,
        )
        outcome = self.begin(flow)
        outcome.outputs.extend(self.attempt(flow, command, outcome))
        return outcome


class AgentTask(Task):
    """Send a prompt to a configured agent CLI.

    The first value names an agent from ``agents.definitions`` or a built-in
    tool preset; the remaining values form the prompt. Files selected with
    ``--ref`` are passed to the agent as context.
    """

    name = "agent"
    description = "Run an AI agent CLI with a prompt and referenced files."
    examples = (
        "taskweave run agent claude 'Summarise the notes' --ref notes",
        "taskweave run agent reviewer 'Review this diff' --ref diff.txt --model sonnet",
    )

    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        if len(args.values) < 2:  # noqa: PLR2004
            raise ValueError("agent requires an agent name and a prompt")
        agent_name, *prompt_parts = args.values
        config = _agent_config(agent_name, flow)
        model = args.option("model")
        if isinstance(model, str):
            config.model = model

        outcome = self.begin(flow)
        prompt = self.attempt(flow, SetCommand(" ".join(prompt_parts), token="prompt"), outcome)
        if not prompt:
            return outcome
        command = AgentCommand(config, prompt, context=list(args.refs), token=args.token)
        outcome.outputs.extend(self.attempt(flow, command, outcome))
        return outcome


class PromptTask(Task):
    """Run a prompt file from ``.github/prompts`` through an agent.

    The first value is the prompt name; the rest replace ``$ARGUMENTS``.
    ``--agent`` picks a configured agent or tool preset (claude by default).
    """

    name = "prompt"
    description = "Run a .github/prompts/{name}.prompt.md file through an agent."
    examples = (
        "taskweave run prompt proposal 'Add user authentication'",
        "taskweave run prompt review --agent copilot --ref diff.txt",
    )

    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        if not args.values:
            raise ValueError("prompt requires a prompt name")
        prompt_name, *arguments = args.values
        agent = args.option("agent", AgentTool.CLAUDE.value)
        if not isinstance(agent, str):
            raise ValueError("--agent requires an agent name")
        config = _agent_config(agent, flow)
        model = args.option("model")
        if isinstance(model, str):
            config.model = model

        command = PromptCommand(
            prompt_name,
            " ".join(arguments),
            agent=config,
            context=list(args.refs),
            token=args.token,
        )
        outcome = self.begin(flow)
        outcome.outputs.extend(self.attempt(flow, command, outcome))
        return outcome


class CleanExecutionsCommand(TransformCommand):
    """Delete execution directories last modified before the retention cutoff.

    The current execution's directory is never removed. Stores a plain-text
    report of what was deleted.
    """

    transform_type = "Clean"

    def __init__(self, retention_days: int, *, now: datetime | None = None) -> None:
        super().__init__(token="clean")
        self.retention_days = retention_days
        self.now = now

    def transform_params(self) -> dict[str, object]:
        return {"days": self.retention_days}

    def execute(self, flow: FlowContext) -> list[Reference]:
        cutoff = (self.now or utc_now()) - timedelta(days=self.retention_days)
        current = flow.directory.path
        scanned = 0
        deleted: list[str] = []
        freed = 0
        for execution in list_executions(flow.output_root):
            if execution.path == current:
                continue
            scanned += 1
            try:
                modified = execution.path.stat().st_mtime
                if modified >= cutoff.timestamp():
                    continue
                size = _directory_size(execution.path)
                shutil.rmtree(execution.path)
            except OSError as error:
                logger.warning("Could not clean %s: %s", execution.path, error)
                flow.renderer.warning(f"Could not process {execution.name}: {error}")
                continue
            deleted.append(execution.name)
            freed += size
            logger.info("Deleted execution directory %s (%d bytes)", execution.name, size)

        noun = "directory" if len(deleted) == 1 else "directories"
        lines = [
            f"Cleaned {len(deleted)} old execution {noun}",
            f"Retention: {self.retention_days} days",
            f"Space freed: {_format_size(freed)}",
            f"Cutoff date: {cutoff.date().isoformat()}",
            f"Directories scanned: {scanned}",
        ]
        lines.extend(f"  - {name}" for name in deleted)
        return [self.store_result(flow, "\n".join(lines), extra_params={"deleted": len(deleted)})]


class CleanTask(Task):
    name = "clean"
    description = "Delete execution directories older than the retention period."
    examples = ("taskweave run clean", "taskweave run clean --days 30")

    def execute(self, args: TaskArgs, flow: FlowContext) -> TaskOutcome:
        raw = args.option("days", DEFAULT_RETENTION_DAYS)
        try:
            days = int(raw)
        except (TypeError, ValueError) as error:
            raise ValueError("Invalid --days value. Must be a non-negative number.") from error
        if days < 0:
            raise ValueError("Invalid --days value. Must be a non-negative number.")
        outcome = self.begin(flow)
        outcome.outputs.extend(self.attempt(flow, CleanExecutionsCommand(days), outcome))
        return outcome


BUILTIN_TASKS: tuple[type[Task], ...] = (
    StoreTask,
    LoadTask,
    ShellTask,
    AgentTask,
    PromptTask,
    CleanTask,
)


def register_builtin_tasks(registry: TaskRegistry) -> None:
    for task_cls in BUILTIN_TASKS:
        registry.add(task_cls)


def _agent_config(agent_name: str, flow: FlowContext) -> AgentConfig:
    definitions = flow.settings.agents.definitions if flow.settings else {}
    if agent_name in definitions:
        return load_agent_config(agent_name, definitions[agent_name])
    try:
        tool = AgentTool(agent_name.lower())
    except ValueError as error:
        presets = (preset.value for preset in AgentTool if preset is not AgentTool.CUSTOM)
        known = ", ".join(sorted({*definitions, *presets}))
        raise ValueError(f"Unknown agent {agent_name!r}; expected one of: {known}") from error
    if tool is AgentTool.CUSTOM:
        raise ValueError("The custom agent tool must be declared under agents.definitions")
    return AgentConfig(tool=tool)


def _directory_size(path: Path) -> int:
    return sum(item.stat().st_size for item in path.rglob("*") if item.is_file())


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:  # noqa: PLR2004
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"
