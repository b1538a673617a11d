"""File input/output commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from taskweave.commands.base import TransformCommand, resolve_text
from taskweave.flow.references import Reference

if TYPE_CHECKING:
    from taskweave.flow.context import FlowContext


def resolve_path(path: str | Path, cwd: Path) -> Path:
    """Absolute path, relative paths resolved against ``cwd``."""

    candidate = Path(path).expanduser()
    return candidate if candidate.is_absolute() else cwd / candidate


class ReadCommand(TransformCommand):
    """Read a text file into the flow.

    Usage::

        [source] = flow.run(ReadCommand("notes.md", token="notes"))
    """

    transform_type = "Read"

    def __init__(self, path: str | Path, *, token: str | None = None) -> None:
        super().__init__(token=token)
        self.path = str(path)

    def transform_params(self) -> dict[str, object]:
        return {"path": self.path}

    def execute(self, flow: FlowContext) -> list[Reference]:
        absolute = resolve_path(self.path, flow.cwd)
        if not absolute.is_file():
            raise FileNotFoundError(f"File not found: {self.path}")
        content = absolute.read_text("utf-8")
        return [self.store_result(flow, content, extra_params={"resolved": str(absolute)})]


class WriteCommand(TransformCommand):
    """Write a reference's content to a file and return a reference to the written path."""

    transform_type = "Write"

    def __init__(self, path: str | Path, source: Reference, *, token: str | None = None) -> None:
        super().__init__(token=token)
        self.path = str(path)
        self.source = source

    def input_tokens(self) -> list[str]:
        return [self.source.label]

    def transform_params(self) -> dict[str, object]:
        return {"path": self.path}

    def execute(self, flow: FlowContext) -> list[Reference]:
        content = resolve_text(flow, self.source)
        absolute = resolve_path(self.path, flow.cwd)
        absolute.parent.mkdir(parents=True, exist_ok=True)
        absolute.write_text(content, "utf-8")
        return [self.store_result(flow, str(absolute))]
