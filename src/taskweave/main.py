"""CLI entrypoint for taskweave."""

import logging

import rich_click as click

from taskweave import __version__
from taskweave.controllers import ListTasksCommand, RunTaskCommand, TaskCliController
from taskweave.flow.errors import DuplicateTaskError
from taskweave.output import Verbosity

click.rich_click.USE_MARKDOWN = True
TASK_CONTROLLER = TaskCliController()

_LOG_LEVELS = {
    Verbosity.VERBOSE: logging.DEBUG,
    Verbosity.QUIET: logging.WARNING,
}


@click.group()
@click.version_option(version=__version__, prog_name="taskweave")
def taskweave() -> None:
    """Compose commands into tasks whose outputs persist as artifacts."""


@taskweave.command(
    "run",
    context_settings={"ignore_unknown_options": True},
)
@click.argument("task_name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--token", default=None, help="Token to store the task's result under.")
@click.option(
    "--ref",
    "refs",
    multiple=True,
    help="File path or token of an earlier artifact to pass to the task. Can be repeated.",
)
@click.option("--verbose", is_flag=True, help="Show progress and per-command detail.")
@click.option("--quiet", is_flag=True, help="Show only task start/end, files and errors.")
@click.option("--summary", is_flag=True, help="Show one summary line per command.")
def run(  # noqa: PLR0913
    task_name: str,
    args: tuple[str, ...],
    token: str | None,
    refs: tuple[str, ...],
    verbose: bool,
    quiet: bool,
    summary: bool,
) -> None:
    """Run a task. Options the CLI does not know are forwarded to the task."""

    selected = [
        level
        for level, enabled in (
            (Verbosity.VERBOSE, verbose),
            (Verbosity.QUIET, quiet),
            (Verbosity.SUMMARY, summary),
        )
        if enabled
    ]
    if len(selected) > 1:
        raise click.UsageError("Use only one of --verbose, --quiet, --summary.")
    verbosity = selected[0] if selected else None
    _configure_logging(verbosity)

    result = TASK_CONTROLLER.run(
        RunTaskCommand(
            task_name=task_name,
            argv=args,
            token=token,
            refs=refs,
            verbosity=verbosity,
        ),
    )
    _emit_lines(result.lines)
    if result.exit_code:
        raise SystemExit(result.exit_code)


@taskweave.command("list")
def list_tasks() -> None:
    """List built-in and discovered tasks."""

    _configure_logging(None)
    try:
        lines = TASK_CONTROLLER.list_tasks(ListTasksCommand())
    except (ValueError, DuplicateTaskError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _configure_logging(verbosity: Verbosity | None) -> None:
    level = _LOG_LEVELS.get(verbosity, logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    taskweave()
