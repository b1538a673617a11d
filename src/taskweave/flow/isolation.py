"""Per-execution output directories holding one artifact per stored reference."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from taskweave.flow.decorators import safe_name
from taskweave.flow.errors import (
    ArtifactMissingError,
    ExecutionDirectoryError,
    PersistenceError,
)
from taskweave.flow.references import Reference
from taskweave.flow.timestamps import (
    format_timestamp,
    next_millisecond,
    truncate_to_millis,
    utc_now,
)

logger = logging.getLogger(__name__)

_MAX_NAME_ATTEMPTS = 1_000
_TIMESTAMP_PREFIX = re.compile(r"^\d{8}T\d{6}-\d{3}-")


@dataclass(slots=True)
class ExecutionSummary:
    """One execution directory found under the output root."""

    name: str
    path: Path
    artifacts: int


def execution_dir_name(started_at: datetime, task_name: str) -> str:
    """``{executionTimestamp}-{taskName}``."""

    return f"{format_timestamp(started_at)}-{safe_name(task_name)}"


class ExecutionDirectory:
    """Directory scoped to one task execution.

    Created lazily on the first write. If another execution already claimed
    the name, the timestamp advances one millisecond at a time, so a directory
    is never shared between executions and name order stays execution order.
    """

    def __init__(
        self,
        output_root: Path,
        task_name: str,
        *,
        started_at: datetime | None = None,
    ) -> None:
        self.output_root = output_root
        self.task_name = task_name
        self.started_at = truncate_to_millis(started_at or utc_now())
        self._path: Path | None = None

    @property
    def name(self) -> str:
        if self._path is not None:
            return self._path.name
        return execution_dir_name(self.started_at, self.task_name)

    @property
    def path(self) -> Path:
        """Claimed directory, or the name it would be created under."""

        return self._path if self._path is not None else self.output_root / self.name

    @property
    def created(self) -> bool:
        return self._path is not None

    def ensure(self) -> Path:
        """Create the directory if needed; failure is fatal for the task."""

        if self._path is not None:
            return self._path
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise ExecutionDirectoryError(
                f"Cannot create output root {self.output_root}: {error}",
            ) from error

        started_at = self.started_at
        for _ in range(_MAX_NAME_ATTEMPTS):
            candidate = self.output_root / execution_dir_name(started_at, self.task_name)
            try:
                candidate.mkdir()
            except FileExistsError:
                started_at = next_millisecond(started_at)
                continue
            except OSError as error:
                raise ExecutionDirectoryError(
                    f"Cannot create execution directory {candidate}: {error}",
                ) from error
            self.started_at = started_at
            self._path = candidate
            logger.debug("Created execution directory %s", candidate)
            return candidate
        raise ExecutionDirectoryError(
            f"No free execution directory name for task {self.task_name!r} "
            f"under {self.output_root}",
        )

    def artifact_path(self, file_name: str) -> Path:
        return self.path / file_name

    def write(self, ref: Reference, text: str) -> Path:
        """Write one artifact; existing files are never overwritten."""

        if ref.file_name is None:
            raise PersistenceError(f"Reference {ref.id} has no file name")
        directory = self.ensure()
        target = directory / ref.file_name
        try:
            with target.open("x", encoding="utf-8") as handle:
                handle.write(text)
        except FileExistsError as error:
            raise PersistenceError(f"Artifact already exists: {target}") from error
        except OSError as error:
            raise PersistenceError(f"Cannot write artifact {target}: {error}") from error
        logger.debug("Wrote artifact %s (%d chars)", target, len(text))
        return target

    def read(self, file_name: str, *, ref_id: str | None = None) -> str:
        target = self.artifact_path(file_name)
        try:
            return target.read_text("utf-8")
        except FileNotFoundError as error:
            raise ArtifactMissingError(
                f"Artifact for reference {ref_id or file_name} is missing: {target}",
                ref_id=ref_id,
                path=str(target),
            ) from error

    def list_artifacts(self) -> list[Path]:
        """Artifacts in name order, which is write order for default names."""

        if self._path is None:
            return []
        return sorted(path for path in self._path.iterdir() if path.is_file())


def list_executions(output_root: Path) -> list[ExecutionSummary]:
    """Execution directories under ``output_root`` in execution order."""

    if not output_root.is_dir():
        return []
    summaries: list[ExecutionSummary] = []
    for path in sorted(output_root.iterdir()):
        if not path.is_dir():
            continue
        summaries.append(
            ExecutionSummary(
                name=path.name,
                path=path,
                artifacts=sum(1 for item in path.iterdir() if item.is_file()),
            ),
        )
    return summaries


def find_latest_artifact(output_root: Path, token: str) -> Path | None:
    """Most recent artifact named after ``token`` across previous executions.

    The token must equal the file stem once its timestamp prefix is removed,
    so ``x`` never matches an artifact stored under ``foo-x``. Read-only
    access to files other executions wrote; no token index is shared.
    """

    stem = safe_name(token)
    matches = [
        path
        for execution in list_executions(output_root)
        for path in sorted(execution.path.iterdir())
        if path.is_file() and _token_stem(path) == stem
    ]
    return matches[-1] if matches else None


def _token_stem(path: Path) -> str | None:
    prefix = _TIMESTAMP_PREFIX.match(path.stem)
    return path.stem[prefix.end() :] if prefix else None
