"""Flow context: the per-execution object commands store, resolve and run through."""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from taskweave.flow.artifacts import decode_value, encode_value, parse_artifact, render_artifact
from taskweave.flow.decorators import RefDecorator, apply_decorators
from taskweave.flow.errors import (
    CommandExecutionError,
    FlowError,
    ExecutionDirectoryError,
    ReferenceNotFoundError,
)
from taskweave.flow.isolation import ExecutionDirectory
from taskweave.flow.references import ContentType, Reference, TaskLog, new_reference_id
from taskweave.flow.timestamps import MonotonicClock, utc_now
from taskweave.output import OutputRenderer, Verbosity

if TYPE_CHECKING:
    from taskweave.commands.base import Command
    from taskweave.config import Settings

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 60


class FlowContext:
    """Stores values as artifacts, resolves references and runs commands.

    One instance per task execution. The token index (token -> latest
    reference) and the value cache are owned here and dropped by ``close``;
    only the artifacts outlive the execution.
    """

    def __init__(  # noqa: PLR0913
        self,
        directory: ExecutionDirectory,
        *,
        cwd: Path | None = None,
        settings: Settings | None = None,
        renderer: OutputRenderer | None = None,
        execution_id: str | None = None,
        clock: MonotonicClock | None = None,
    ) -> None:
        self.directory = directory
        self.cwd = cwd or Path.cwd()
        self.settings = settings
        self.renderer = renderer or OutputRenderer(Verbosity.QUIET)
        self.execution_id = execution_id or str(uuid4())
        self._clock = clock or MonotonicClock()
        self._tokens: dict[str, Reference] = {}
        self._values: dict[str, Any] = {}
        self._references: dict[str, Reference] = {}
        self._logs: list[TaskLog] = []
        self._depth = 0
        self._closed = False

    def __enter__(self) -> FlowContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def output_root(self) -> Path:
        return self.directory.output_root

    @property
    def default_extension(self) -> str:
        return self.settings.default_extension if self.settings is not None else "txt"

    @property
    def logs(self) -> list[TaskLog]:
        """Live run log: one entry per reference returned by a top-level ``run``."""

        return self._logs

    def store(self, value: Any, decorators: Iterable[RefDecorator] = ()) -> Reference:
        """Decorate, persist and index ``value``; returns its reference.

        Nothing is written and the token index is untouched when the value
        cannot be stored losslessly (``TypeError``), a decorator fails
        (``DecorationError``) or the write fails (``PersistenceError``).
        """

        self._ensure_open()
        content, content_type = encode_value(value)

        base = Reference(
            id=new_reference_id(),
            timestamp=self._clock.tick(),
            content_type=content_type,
        )
        extension = "json" if content_type is ContentType.JSON else self.default_extension
        ref = apply_decorators(base, decorators, default_extension=extension)

        text = render_artifact(content, ref.metadata)
        path = self.directory.write(ref, text)

        self._references[ref.id] = ref
        self._values[ref.id] = decode_value(content, content_type)
        if ref.token:
            previous = self._tokens.get(ref.token)
            self._tokens[ref.token] = ref
            if previous is not None:
                logger.debug("Token %r moved from %s to %s", ref.token, previous.id, ref.id)
        logger.debug("Stored %s as %s", ref.label, path.name)
        self.renderer.file_created(path)
        return ref

    def get(self, ref: Reference) -> Any:
        """Resolve a reference, reading its artifact when the value is not cached."""

        if ref.id in self._values:
            return _detached(self._values[ref.id], ref.content_type)
        if ref.file_name is None:
            raise ReferenceNotFoundError(
                f"Reference {ref.label} was never stored in this flow",
                ref_id=ref.id,
            )
        text = self.directory.read(ref.file_name, ref_id=ref.id)
        parsed = parse_artifact(text, has_header=bool(ref.metadata))
        value = decode_value(parsed.content, ref.content_type)
        self._values[ref.id] = value
        return _detached(value, ref.content_type)

    def token(self, name: str) -> Any | None:
        """Latest value stored under ``name`` in this execution, or ``None``."""

        ref = self._tokens.get(name)
        if ref is None:
            return None
        return self.get(ref)

    def token_ref(self, name: str) -> Reference | None:
        return self._tokens.get(name)

    def references(self) -> list[Reference]:
        """Stored references in store order."""

        return list(self._references.values())

    def artifact_path(self, ref: Reference) -> Path:
        if ref.file_name is None:
            raise ReferenceNotFoundError(f"Reference {ref.label} has no artifact", ref_id=ref.id)
        return self.directory.artifact_path(ref.file_name)

    def is_resolvable(self, ref: Reference) -> bool:
        if ref.id in self._references:
            return True
        return ref.file_name is not None and self.directory.artifact_path(ref.file_name).is_file()

    def run(self, command: Command) -> list[Reference]:
        """Execute ``command`` against this context and return its references.

        Failures inside ``execute`` surface as ``CommandExecutionError`` carrying
        the original message, artifact write failures included. Nested command
        failures and ``ExecutionDirectoryError`` pass through unchanged.
        """

        self._ensure_open()
        name = command_name(command)
        args = command_args(command)
        top_level = self._depth == 0
        start = utc_now()
        started = time.monotonic()
        self.renderer.progress(f"{name} {' '.join(args)}".strip())

        self._depth += 1
        try:
            result = command.execute(self)
        except (CommandExecutionError, ExecutionDirectoryError):
            raise
        except Exception as error:
            message = str(error) or type(error).__name__
            logger.debug("Command %s failed: %s", name, message)
            raise CommandExecutionError(message, command=name) from error
        finally:
            self._depth -= 1

        refs = self._checked_results(name, result)
        end = utc_now()
        if top_level:
            self._logs.extend(
                TaskLog.from_reference(ref, command=name, args=args, start=start, end=end)
                for ref in refs
            )
            self.renderer.command_summary(
                name,
                references=len(refs),
                elapsed_seconds=time.monotonic() - started,
            )
        return refs

    def close(self) -> None:
        """Discard in-memory state; artifacts stay on disk."""

        self._tokens.clear()
        self._values.clear()
        self._references.clear()
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise FlowError("Flow context is closed")

    def _checked_results(self, name: str, result: object) -> list[Reference]:
        if not isinstance(result, Sequence) or isinstance(result, str | bytes):
            raise CommandExecutionError(
                f"{name} returned {type(result).__name__}, expected a list of references",
                command=name,
            )
        refs: list[Reference] = []
        for item in result:
            if not isinstance(item, Reference):
                raise CommandExecutionError(
                    f"{name} returned {type(item).__name__}, expected Reference",
                    command=name,
                )
            if not self.is_resolvable(item):
                raise CommandExecutionError(
                    f"{name} returned unresolvable reference {item.label}",
                    command=name,
                )
            refs.append(item)
        return refs


def command_name(command: object) -> str:
    name = getattr(command, "name", None)
    return name if isinstance(name, str) and name else type(command).__name__


def command_args(command: object) -> tuple[str, ...]:
    """Public attributes of a command rendered as short ``key=value`` strings."""

    try:
        attributes = vars(command)
    except TypeError:
        return ()
    return tuple(
        f"{key}={_preview(value)}"
        for key, value in attributes.items()
        if not key.startswith("_") and key != "name"
    )


def _preview(value: object) -> str:
    if isinstance(value, Reference):
        return f"@{value.label}"
    if callable(value):
        return getattr(value, "__name__", type(value).__name__)
    if isinstance(value, list | tuple):
        return "[" + ", ".join(_preview(item) for item in value) + "]"
    text = str(value)
    return text if len(text) <= _PREVIEW_CHARS else text[: _PREVIEW_CHARS - 3] + "..."


def _detached(value: Any, content_type: ContentType) -> Any:
    if content_type is ContentType.JSON:
        return copy.deepcopy(value)
    return value
