"""Built-in commands run through ``FlowContext.run``."""

from taskweave.commands.agents import (
    AgentCommand,
    AgentConfig,
    AgentConfigError,
    AgentTool,
    build_agent_args,
    load_agent_config,
)
from taskweave.commands.base import Command, TransformCommand
from taskweave.commands.io import ReadCommand, WriteCommand
from taskweave.commands.process import ProcessResult, ProcessStatus, run_process
from taskweave.commands.prompt import PromptCommand, QuestionCommand, fill_prompt_template
from taskweave.commands.shell import ShellCommand
from taskweave.commands.text import (
    ExtractCommand,
    JoinCommand,
    JsonTransformCommand,
    MatchCommand,
    ReplaceCommand,
    SetCommand,
    TextTransformCommand,
    TokenReplaceCommand,
)

__all__ = [
    "AgentCommand",
    "AgentConfig",
    "AgentConfigError",
    "AgentTool",
    "Command",
    "ExtractCommand",
    "JoinCommand",
    "JsonTransformCommand",
    "MatchCommand",
    "ProcessResult",
    "ProcessStatus",
    "PromptCommand",
    "QuestionCommand",
    "ReadCommand",
    "ReplaceCommand",
    "SetCommand",
    "ShellCommand",
    "TextTransformCommand",
    "TokenReplaceCommand",
    "TransformCommand",
    "WriteCommand",
    "build_agent_args",
    "fill_prompt_template",
    "load_agent_config",
    "run_process",
]
