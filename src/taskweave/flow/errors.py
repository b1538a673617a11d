"""Error types raised by the reference and data-flow engine."""

from __future__ import annotations


class FlowError(RuntimeError):
    """Base error for flow, persistence and task registry failures."""


class ReferenceNotFoundError(FlowError):
    """Reference was never persisted by this flow and names no artifact."""

    def __init__(self, message: str, *, ref_id: str | None = None) -> None:
        super().__init__(message)
        self.ref_id = ref_id


class ArtifactMissingError(ReferenceNotFoundError):
    """Reference names an artifact that should exist on disk but does not."""

    def __init__(self, message: str, *, ref_id: str | None = None, path: str | None = None):
        super().__init__(message, ref_id=ref_id)
        self.path = path


class DecorationError(FlowError):
    """A decorator failed; the enclosing store wrote nothing."""


class PersistenceError(FlowError):
    """Artifact or execution directory could not be written."""


class ExecutionDirectoryError(PersistenceError):
    """The execution directory could not be created; fatal for the task."""


class CommandExecutionError(FlowError):
    """A command failed inside ``execute``.

    ``str(error)`` is the original failure message so tasks can record it verbatim.
    """

    def __init__(self, message: str, *, command: str | None = None) -> None:
        super().__init__(message)
        self.command = command


class DiscoveryError(FlowError):
    """A task module could not be loaded."""


class DuplicateTaskError(FlowError):
    """Two registrations claimed the same task name."""


class UnknownTaskError(FlowError, LookupError):
    """Requested task name is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        listing = ", ".join(available) if available else "none"
        super().__init__(f"Unknown task: {name}. Available tasks: {listing}")
        self.name = name
        self.available = available
