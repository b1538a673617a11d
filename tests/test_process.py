from __future__ import annotations

import sys

import allure
import pytest

from taskweave.commands.process import TIMEOUT_EXIT_CODE, ProcessStatus, run_process
from taskweave.commands.shell import ShellCommand, shell_args
from taskweave.flow.context import FlowContext
from taskweave.flow.errors import CommandExecutionError

pytestmark = [
    allure.epic("Commands"),
    allure.feature("External Processes"),
]


def test_successful_process_captures_stdout(python_script) -> None:
    argv = python_script("hello", "print('hello from child')")

    result = run_process(argv, timeout_seconds=10)

    assert result.status is ProcessStatus.SUCCESS
    assert result.ok
    assert result.stdout.strip() == "hello from child"
    assert result.exit_code == 0


def test_nonzero_exit_keeps_stderr(python_script) -> None:
    argv = python_script(
        "fail",
        "import sys\nsys.stderr.write('bad input\\n')\nraise SystemExit(3)",
    )

    result = run_process(argv, timeout_seconds=10)

    assert result.status is ProcessStatus.NONZERO_EXIT
    assert result.exit_code == 3
    assert "bad input" in result.stderr
    assert result.describe_failure("child") == "child exited with code 3\nbad input"


def test_process_past_deadline_is_terminated(python_script) -> None:
    argv = python_script("sleepy", "import time\ntime.sleep(30)")

    result = run_process(argv, timeout_seconds=0.3)

    assert result.status is ProcessStatus.TIMEOUT
    assert result.exit_code == TIMEOUT_EXIT_CODE
    assert result.elapsed_seconds < 10
    assert "timed out" in result.describe_failure("child")


def test_missing_executable_is_unavailable() -> None:
    result = run_process(["taskweave-no-such-binary-xyz"], timeout_seconds=5)

    assert result.status is ProcessStatus.UNAVAILABLE
    assert "taskweave-no-such-binary-xyz" in (result.error or "")


def test_environment_overrides_reach_the_child(python_script) -> None:
    argv = python_script("env", "import os\nprint(os.environ['TASKWEAVE_PROBE'])")

    result = run_process(argv, timeout_seconds=10, env={"TASKWEAVE_PROBE": "probe-value"})

    assert result.stdout.strip() == "probe-value"


def test_empty_argv_is_rejected() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        run_process([], timeout_seconds=1)


@pytest.mark.parametrize(
    ("executable", "expected"),
    [
        ("bash", ["bash", "-c", "echo hi"]),
        (
            "/usr/bin/pwsh",
            ["/usr/bin/pwsh", "-NoProfile", "-NonInteractive", "-Command", "echo hi"],
        ),
        ("cmd.exe", ["cmd.exe", "/d", "/c", "echo hi"]),
    ],
)
def test_shell_args_per_interpreter(executable: str, expected: list[str]) -> None:
    assert shell_args(executable, "echo hi") == expected


def test_shell_command_stores_trimmed_stdout(flow: FlowContext) -> None:
    command = ShellCommand("print('  shell output  ')", token="out", shell=sys.executable)

    [ref] = flow.run(command)

    assert flow.get(ref) == "shell output"
    assert flow.token("out") == "shell output"
    assert ref.metadata[0].params["exitCode"] == 0


def test_shell_command_failure_is_a_command_error(flow: FlowContext) -> None:
    command = ShellCommand("raise SystemExit(7)", shell=sys.executable)

    with pytest.raises(CommandExecutionError, match="exited with code 7"):
        flow.run(command)
    assert flow.references() == []


def test_shell_command_timeout_is_a_hard_failure(flow: FlowContext) -> None:
    command = ShellCommand(
        "import time; time.sleep(30)",
        shell=sys.executable,
        timeout_seconds=0.3,
    )

    with pytest.raises(CommandExecutionError, match="timed out"):
        flow.run(command)
