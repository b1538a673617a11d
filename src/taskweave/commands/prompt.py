"""Interactive input and reusable prompt files."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import rich_click as click

from taskweave.commands.agents import AgentCommand, AgentConfig, AgentTool
from taskweave.commands.base import TransformCommand
from taskweave.commands.io import ReadCommand
from taskweave.commands.text import TextTransformCommand
from taskweave.flow.references import Reference

if TYPE_CHECKING:
    from taskweave.flow.context import FlowContext

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(".github") / "prompts"
PROMPT_SUFFIX = ".prompt.md"
ARGUMENTS_PLACEHOLDER = "$ARGUMENTS"

_FRONT_MATTER = re.compile(r"\A---\r?\n.*?\r?\n---\r?\n", re.DOTALL)
_BARE_ARGUMENTS_LINE = re.compile(re.escape(ARGUMENTS_PLACEHOLDER) + r"\r?\n?")


class QuestionCommand(TransformCommand):
    """Ask the user a question on the terminal and store the answer."""

    transform_type = "Question"

    def __init__(
        self,
        prompt: str,
        *,
        token: str | None = None,
        default: str | None = None,
        ask: Callable[..., str] | None = None,
    ) -> None:
        super().__init__(token=token)
        self.prompt = prompt
        self.default = default
        self._ask = ask or click.prompt

    def transform_params(self) -> dict[str, object]:
        return {"prompt": self.prompt}

    def execute(self, flow: FlowContext) -> list[Reference]:
        if self.default is None:
            answer = self._ask(self.prompt, type=str)
        else:
            answer = self._ask(self.prompt, default=self.default, type=str)
        return [self.store_result(flow, str(answer))]


def find_workspace_root(start: Path) -> Path:
    """Nearest directory at or above ``start`` that contains ``.github``."""

    for candidate in (start, *start.parents):
        if (candidate / ".github").is_dir():
            return candidate
    raise FileNotFoundError(
        f"Could not find a .github directory at or above {start}; "
        f"prompt files live in {PROMPTS_DIR.as_posix()}/",
    )


def fill_prompt_template(content: str, arguments: str = "") -> str:
    """Drop the front matter block and substitute ``$ARGUMENTS``.

    Without arguments the placeholder is removed together with its line break.
    """

    body = _FRONT_MATTER.sub("", content, count=1)
    if arguments:
        body = body.replace(ARGUMENTS_PLACEHOLDER, arguments)
    else:
        body = _BARE_ARGUMENTS_LINE.sub("", body)
    return body.strip()


class PromptCommand:
    """Run a ``.github/prompts/{name}.prompt.md`` file through an agent.

    Composed from other commands: the file is read with ``ReadCommand``, the
    front matter and ``$ARGUMENTS`` are handled by a ``TextTransformCommand``
    and the result is sent with ``AgentCommand``. Each step leaves its own
    artifact; the agent's output is returned.

    Usage::

        [proposal] = flow.run(PromptCommand("proposal", "Add user authentication"))
    """

    name = "PromptCommand"

    def __init__(
        self,
        prompt_name: str,
        arguments: str = "",
        *,
        agent: AgentConfig | None = None,
        context: list[Reference | str | Path] | None = None,
        token: str | None = None,
    ) -> None:
        self.prompt_name = prompt_name
        self.arguments = arguments
        self.agent = agent or AgentConfig(tool=AgentTool.CLAUDE)
        self.context = list(context or [])
        self.token = token

    def prompt_path(self, cwd: Path) -> Path:
        root = find_workspace_root(cwd)
        path = root / PROMPTS_DIR / f"{self.prompt_name}{PROMPT_SUFFIX}"
        if not path.is_file():
            raise FileNotFoundError(
                f"Prompt file not found: {self.prompt_name}{PROMPT_SUFFIX} (expected at {path})",
            )
        return path

    def execute(self, flow: FlowContext) -> list[Reference]:
        path = self.prompt_path(flow.cwd)
        logger.debug("Using prompt file %s", path)
        arguments = self.arguments

        def fill_arguments(text: str) -> str:
            return fill_prompt_template(text, arguments)

        [source] = flow.run(ReadCommand(path))
        [prompt] = flow.run(TextTransformCommand(source, fill_arguments))
        return flow.run(AgentCommand(self.agent, [prompt], context=self.context, token=self.token))
