"""External AI-agent CLI invocation."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskweave.commands.base import TransformCommand, ref_labels, resolve_text, token_decorators
from taskweave.commands.process import run_process
from taskweave.flow.references import Reference

if TYPE_CHECKING:
    from taskweave.flow.context import FlowContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 600.0
PROMPT_SEPARATOR = "\n\n"


class AgentTool(str, Enum):
    """Supported agent CLIs with built-in argument presets."""

    GEMINI = "gemini"
    CLAUDE = "claude"
    COPILOT = "copilot"
    AIDER = "aider"
    CODEBUFF = "codebuff"
    QWEN = "qwen"
    CRUSH = "crush"
    LLM = "llm"
    OPENAI = "openai"
    CUSTOM = "custom"


_API_KEY_ENV = {
    AgentTool.GEMINI: "GEMINI_API_KEY",
    AgentTool.CLAUDE: "ANTHROPIC_API_KEY",
    AgentTool.OPENAI: "OPENAI_API_KEY",
}


@dataclass(slots=True)
class AgentConfig:
    """How to invoke one agent CLI.

    ``command_template`` (required for ``AgentTool.CUSTOM``) is a shell-like
    template with ``{prompt}``, ``{prompt_file}`` and ``{model}`` placeholders.
    """

    tool: AgentTool
    model: str | None = None
    provider: str | None = None
    context_files: tuple[str, ...] = ()
    allow_all_tools: bool = False
    temperature: float | None = None
    api_key: str | None = field(default=None, repr=False)
    extra_args: tuple[str, ...] = ()
    timeout_seconds: float | None = None
    working_directory: str | None = None
    command_template: str | None = None
    executable: str | None = None
    env: dict[str, str] = field(default_factory=dict)


class AgentConfigError(ValueError):
    """Agent configuration cannot be turned into a command line."""


def load_agent_config(name: str, definition: Mapping[str, Any]) -> AgentConfig:
    """Build an ``AgentConfig`` from one ``agents.definitions`` entry."""

    tool_raw = definition.get("tool", definition.get("type", name))
    try:
        tool = AgentTool(str(tool_raw).strip().lower())
    except ValueError as error:
        supported = ", ".join(tool.value for tool in AgentTool)
        raise AgentConfigError(
            f"Unsupported agent tool {tool_raw!r} for agent {name!r}; expected one of: {supported}",
        ) from error

    context_files = definition.get("contextFiles", [])
    extra_args = definition.get("extraArgs", [])
    env = definition.get("env", {})
    if not isinstance(context_files, list) or not isinstance(extra_args, list):
        raise AgentConfigError(f"Agent {name!r}: contextFiles and extraArgs must be lists")
    if not isinstance(env, dict):
        raise AgentConfigError(f"Agent {name!r}: env must be an object")

    timeout = definition.get("timeoutSeconds")
    temperature = definition.get("temperature")
    config = AgentConfig(
        tool=tool,
        model=definition.get("model"),
        provider=definition.get("provider"),
        context_files=tuple(str(item) for item in context_files),
        allow_all_tools=bool(definition.get("allowAllTools", False)),
        temperature=float(temperature) if temperature is not None else None,
        api_key=definition.get("apiKey"),
        extra_args=tuple(str(item) for item in extra_args),
        timeout_seconds=float(timeout) if timeout is not None else None,
        working_directory=definition.get("workingDirectory"),
        command_template=definition.get("commandTemplate"),
        executable=definition.get("executable"),
        env={str(key): str(value) for key, value in env.items()},
    )
    if config.tool is AgentTool.CUSTOM and not config.command_template:
        raise AgentConfigError(f"Agent {name!r}: custom agents require commandTemplate")
    return config


def build_agent_args(
    config: AgentConfig,
    *,
    prompt: str,
    prompt_file: Path,
    context_files: Sequence[str] = (),
) -> list[str]:
    """Argument vector for the configured tool."""

    files = [*config.context_files, *context_files]
    if config.command_template:
        args = _render_command_template(
            config.command_template,
            prompt=prompt,
            prompt_file=prompt_file,
            model=config.model or "",
        )
        return [*args, *config.extra_args, *files]

    executable = config.executable or config.tool.value
    args = [executable]
    tool = config.tool
    if tool is AgentTool.AIDER:
        args += ["--message", prompt]
    elif tool in (AgentTool.CODEBUFF, AgentTool.LLM):
        args.append(prompt)
    else:
        args += ["-p", prompt]

    if config.model:
        args += ["-m", config.model] if tool is AgentTool.LLM else ["--model", config.model]
    if config.allow_all_tools and tool in (AgentTool.CLAUDE, AgentTool.COPILOT):
        args.append("--allow-all-tools")
    if config.provider and tool is AgentTool.CRUSH:
        args += ["--provider", config.provider]
    if config.temperature is not None and tool is AgentTool.LLM:
        args += ["--temperature", str(config.temperature)]
    args.extend(config.extra_args)
    if tool in (AgentTool.GEMINI, AgentTool.AIDER, AgentTool.QWEN):
        args.extend(files)
    return args


def _render_command_template(
    template: str,
    *,
    prompt: str,
    prompt_file: Path,
    model: str,
) -> list[str]:
    stripped = template.strip()
    if not stripped:
        raise AgentConfigError("Agent command template is empty.")
    if "{prompt}" not in stripped and "{prompt_file}" not in stripped:
        raise AgentConfigError("Agent command template must include {prompt} or {prompt_file}.")
    try:
        rendered = stripped.format(
            prompt=shlex.quote(prompt),
            prompt_file=shlex.quote(str(prompt_file)),
            model=shlex.quote(model),
        )
    except (KeyError, IndexError) as error:
        raise AgentConfigError(f"Unsupported command template placeholder: {error}") from error
    argv = shlex.split(rendered)
    if not argv:
        raise AgentConfigError("Agent command template rendered empty command.")
    return argv


class AgentCommand(TransformCommand):
    """Invoke an agent CLI with a prompt assembled from references.

    Prompt references are joined with blank lines; the assembled prompt is
    stored as its own artifact (token ``{token}-prompt`` when a token is set)
    and its path is available to templates as ``{prompt_file}``. Context
    references are passed as artifact file paths. The agent's stdout is the
    returned reference.
    """

    transform_type = "Agent"

    def __init__(
        self,
        config: AgentConfig,
        prompt: Sequence[str | Reference],
        *,
        context: Sequence[Reference | str | Path] = (),
        token: str | None = None,
    ) -> None:
        super().__init__(token=token)
        self.config = config
        self.prompt = list(prompt)
        self.context = list(context)

    def input_tokens(self) -> list[str]:
        return ref_labels(*self.prompt, *self.context)

    def transform_params(self) -> dict[str, Any]:
        return {"tool": self.config.tool.value, "model": self.config.model}

    def execute(self, flow: FlowContext) -> list[Reference]:
        prompt = PROMPT_SEPARATOR.join(resolve_text(flow, part) for part in self.prompt)
        if not prompt.strip():
            raise ValueError("Agent prompt is empty")
        prompt_token = f"{self.token}-prompt" if self.token else None
        prompt_ref = flow.store(prompt, token_decorators(prompt_token))
        context_files = [self._context_path(flow, item) for item in self.context]

        args = build_agent_args(
            self.config,
            prompt=prompt,
            prompt_file=flow.artifact_path(prompt_ref),
            context_files=context_files,
        )
        timeout = self.config.timeout_seconds or (
            flow.settings.agents.timeout_seconds if flow.settings else DEFAULT_TIMEOUT_SECONDS
        )
        cwd = Path(self.config.working_directory) if self.config.working_directory else flow.cwd
        logger.info("Invoking agent %s with %d context file(s)", args[0], len(context_files))
        result = run_process(args, timeout_seconds=timeout, cwd=cwd, env=self._env())
        if not result.ok:
            raise RuntimeError(result.describe_failure(f"Agent {args[0]}"))
        return [
            self.store_result(
                flow,
                result.stdout,
                extra_params={"contextFiles": context_files, "promptRef": prompt_ref.id},
            ),
        ]

    def _env(self) -> dict[str, str]:
        env = dict(self.config.env)
        key_name = _API_KEY_ENV.get(self.config.tool)
        if self.config.api_key and key_name:
            env[key_name] = self.config.api_key
        return env

    @staticmethod
    def _context_path(flow: FlowContext, item: Reference | str | Path) -> str:
        if isinstance(item, Reference):
            return str(flow.artifact_path(item))
        return str(Path(item).expanduser().resolve())
