"""Shell script execution command."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from taskweave.commands.base import TransformCommand, resolve_text
from taskweave.commands.process import ProcessResult, run_process
from taskweave.flow.references import Reference

if TYPE_CHECKING:
    from taskweave.flow.context import FlowContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def shell_args(executable: str, script: str) -> list[str]:
    """Argument vector running ``script`` with the given interpreter."""

    name = Path(executable).name.lower()
    if name.startswith(("powershell", "pwsh")):
        return [executable, "-NoProfile", "-NonInteractive", "-Command", script]
    if name in {"cmd", "cmd.exe"}:
        return [executable, "/d", "/c", script]
    return [executable, "-c", script]


def default_shell() -> str:
    return "powershell.exe" if os.name == "nt" else "bash"


class ShellCommand(TransformCommand):
    """Run a shell script and store its trimmed stdout.

    Non-zero exit, timeout, or a missing interpreter fail the command.
    """

    transform_type = "Shell"

    def __init__(
        self,
        script: str | Reference,
        *,
        token: str | None = None,
        timeout_seconds: float | None = None,
        shell: str | None = None,
        cwd: Path | None = None,
    ) -> None:
        super().__init__(token=token)
        self.script = script
        self.timeout_seconds = timeout_seconds
        self.shell = shell
        self.cwd = cwd

    def transform_params(self) -> dict[str, object]:
        return {"shell": self.shell or "default"}

    def execute(self, flow: FlowContext) -> list[Reference]:
        script = resolve_text(flow, self.script)
        executable, timeout = self._resolve_runtime(flow)
        result = run_process(
            shell_args(executable, script),
            timeout_seconds=timeout,
            cwd=self.cwd or flow.cwd,
        )
        self._raise_for_failure(result, executable)
        return [
            self.store_result(
                flow,
                result.stdout.strip(),
                extra_params={"shell": executable, "exitCode": result.exit_code},
            ),
        ]

    def _resolve_runtime(self, flow: FlowContext) -> tuple[str, float]:
        settings = flow.settings
        executable = self.shell or (settings.shell.executable if settings else default_shell())
        timeout = self.timeout_seconds or (
            settings.shell.timeout_seconds if settings else DEFAULT_TIMEOUT_SECONDS
        )
        return executable, timeout

    @staticmethod
    def _raise_for_failure(result: ProcessResult, executable: str) -> None:
        if result.ok:
            return
        message = result.describe_failure(f"Shell ({executable})")
        logger.info("Shell command failed: status=%s", result.status.value)
        raise RuntimeError(message)
