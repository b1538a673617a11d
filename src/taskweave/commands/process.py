"""Blocking external process invocation with a deadline."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
_POLL_INTERVAL_SECONDS = 0.05


class ProcessStatus(str, Enum):
    """Tagged outcome of one external process run."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    NONZERO_EXIT = "nonzero_exit"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True)
class ProcessResult:
    """Captured output of one external process run."""

    status: ProcessStatus
    args: tuple[str, ...]
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    elapsed_seconds: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ProcessStatus.SUCCESS

    def describe_failure(self, label: str) -> str:
        """Human-readable failure message for command errors."""

        if self.status is ProcessStatus.TIMEOUT:
            return f"{label} timed out after {self.elapsed_seconds:.1f}s"
        if self.status is ProcessStatus.UNAVAILABLE:
            return f"{label} could not be started: {self.error}"
        if self.status is ProcessStatus.NONZERO_EXIT:
            details = (self.stderr or self.stdout).strip()
            suffix = f"\n{details}" if details else ""
            return f"{label} exited with code {self.exit_code}{suffix}"
        return f"{label} succeeded"


def run_process(
    args: Sequence[str],
    *,
    timeout_seconds: float,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessResult:
    """Run ``args`` until exit or deadline; never raises for the common failure cases.

    A missing executable yields ``UNAVAILABLE``; a process still running at
    the deadline is terminated (then killed) and yields ``TIMEOUT``.
    """

    argv = tuple(str(arg) for arg in args)
    if not argv:
        raise ValueError("Process arguments must not be empty")
    run_env = os.environ.copy()
    if env:
        run_env.update(env)

    logger.debug("Starting process: %s", argv[0])
    with (
        tempfile.TemporaryFile("w+", encoding="utf-8") as stdout_handle,
        tempfile.TemporaryFile("w+", encoding="utf-8") as stderr_handle,
    ):
        start_monotonic = time.monotonic()
        try:
            process = subprocess.Popen(  # noqa: S603
                argv,
                cwd=str(cwd) if cwd is not None else None,
                env=run_env,
                stdin=subprocess.DEVNULL,
                stdout=stdout_handle,
                stderr=stderr_handle,
                text=True,
            )
        except FileNotFoundError:
            return ProcessResult(
                status=ProcessStatus.UNAVAILABLE,
                args=argv,
                error=f"command not found: {argv[0]}",
            )
        except OSError as error:
            return ProcessResult(
                status=ProcessStatus.UNAVAILABLE,
                args=argv,
                error=f"failed to start {argv[0]}: {error}",
            )

        timed_out = _wait_with_deadline(process, timeout_seconds=timeout_seconds)
        elapsed = time.monotonic() - start_monotonic
        stdout = _read_back(stdout_handle)
        stderr = _read_back(stderr_handle)

    if timed_out:
        logger.warning("Process %s timed out after %.1fs", argv[0], elapsed)
        return ProcessResult(
            status=ProcessStatus.TIMEOUT,
            args=argv,
            stdout=stdout,
            stderr=stderr,
            exit_code=TIMEOUT_EXIT_CODE,
            elapsed_seconds=elapsed,
        )
    status = ProcessStatus.SUCCESS if process.returncode == 0 else ProcessStatus.NONZERO_EXIT
    logger.debug("Process %s finished: exit=%s elapsed=%.2fs", argv[0], process.returncode, elapsed)
    return ProcessResult(
        status=status,
        args=argv,
        stdout=stdout,
        stderr=stderr,
        exit_code=process.returncode,
        elapsed_seconds=elapsed,
    )


def _wait_with_deadline(process: subprocess.Popen[str], *, timeout_seconds: float) -> bool:
    deadline = time.monotonic() + max(0.0, timeout_seconds)
    while True:
        if process.poll() is not None:
            return False
        if time.monotonic() >= deadline:
            _terminate_process(process)
            return True
        time.sleep(_POLL_INTERVAL_SECONDS)


def _read_back(handle: IO[str]) -> str:
    handle.flush()
    handle.seek(0)
    return handle.read()


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)
