"""Terminal output for task executions, filtered by verbosity."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from pathlib import Path

import rich_click as click


class Verbosity(str, Enum):
    """Output levels; each level includes everything shown by the ones before."""

    QUIET = "quiet"
    SUMMARY = "summary"
    VERBOSE = "verbose"

    @classmethod
    def parse(cls, value: str | Verbosity | None, default: Verbosity | None = None) -> Verbosity:
        if value is None:
            return default or cls.SUMMARY
        if isinstance(value, Verbosity):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as error:
            allowed = ", ".join(level.value for level in cls)
            message = f"Unsupported verbosity {value!r}; expected one of: {allowed}"
            raise ValueError(message) from error

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {Verbosity.QUIET: 0, Verbosity.SUMMARY: 1, Verbosity.VERBOSE: 2}


class OutputRenderer:
    """Writes task progress lines.

    quiet: task start/end, created files, errors.
    summary: adds one summary line per command.
    verbose: adds progress and informational messages.
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.SUMMARY,
        *,
        echo: Callable[..., None] = click.echo,
    ) -> None:
        self.verbosity = verbosity
        self._echo = echo

    def shows(self, level: Verbosity) -> bool:
        return self.verbosity.rank >= level.rank

    def task_started(self, name: str, directory: Path) -> None:
        self._emit(Verbosity.QUIET, click.style(f"▶ {name}", bold=True) + f"  ({directory})")

    def task_finished(self, name: str, *, elapsed_seconds: float, errors: int) -> None:
        status = click.style("done", fg="green") if not errors else click.style(
            f"done with {errors} error(s)",
            fg="yellow",
        )
        self._emit(Verbosity.QUIET, f"■ {name} {status} in {elapsed_seconds:.2f}s")

    def task_failed(self, name: str, message: str) -> None:
        line = click.style(f"✖ {name} failed: {message}", fg="red")
        self._emit(Verbosity.QUIET, line, err=True)

    def file_created(self, path: Path) -> None:
        self._emit(Verbosity.QUIET, f"  + {path}")

    def command_summary(self, command: str, *, references: int, elapsed_seconds: float) -> None:
        self._emit(
            Verbosity.SUMMARY,
            f"  {command}: {references} reference(s) in {elapsed_seconds:.2f}s",
        )

    def progress(self, message: str) -> None:
        self._emit(Verbosity.VERBOSE, click.style(f"  … {message}", dim=True))

    def warning(self, message: str) -> None:
        self._emit(Verbosity.VERBOSE, click.style(f"  ! {message}", fg="yellow"))

    def error(self, message: str) -> None:
        self._emit(Verbosity.QUIET, click.style(f"  ✖ {message}", fg="red"), err=True)

    def _emit(self, level: Verbosity, line: str, *, err: bool = False) -> None:
        if self.shows(level):
            self._echo(line, err=err)
