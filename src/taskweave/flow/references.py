"""Immutable reference records handed between workflow steps."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from taskweave.flow.timestamps import utc_now


class ContentType(str, Enum):
    """How a stored value is encoded inside its artifact."""

    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class TransformMetadata:
    """One transform applied to a value, persisted in the artifact header."""

    type: str
    inputs: tuple[str, ...] = ()
    params: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class Reference:
    """Opaque handle to a stored value.

    The value itself is never held here; resolve it through ``FlowContext.get``.
    Use ``dataclasses.replace`` (or the ``with_*`` helpers) to derive copies.
    """

    id: str
    timestamp: datetime
    token: str | None = None
    file_name: str | None = None
    metadata: tuple[TransformMetadata, ...] = ()
    content_type: ContentType = ContentType.TEXT

    @property
    def label(self) -> str:
        """Token when present, otherwise id; used for default naming and messages."""

        return self.token or self.id

    def with_token(self, token: str) -> Reference:
        return replace(self, token=token)

    def with_file_name(self, file_name: str) -> Reference:
        return replace(self, file_name=file_name)

    def with_metadata(self, block: TransformMetadata) -> Reference:
        return replace(self, metadata=(*self.metadata, block))


def new_reference_id() -> str:
    """Fresh id; ids are never reused."""

    return str(uuid4())


def new_reference(
    *,
    timestamp: datetime | None = None,
    content_type: ContentType = ContentType.TEXT,
) -> Reference:
    """Base reference before decoration."""

    return Reference(
        id=new_reference_id(),
        timestamp=timestamp or utc_now(),
        content_type=content_type,
    )


@dataclass(frozen=True, slots=True)
class TaskLog(Reference):
    """Reference produced by a top-level command run, with run bookkeeping."""

    command: str = ""
    args: tuple[str, ...] = ()
    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_reference(
        cls,
        ref: Reference,
        *,
        command: str,
        args: tuple[str, ...],
        start: datetime,
        end: datetime,
    ) -> TaskLog:
        return cls(
            id=ref.id,
            timestamp=ref.timestamp,
            token=ref.token,
            file_name=ref.file_name,
            metadata=ref.metadata,
            content_type=ref.content_type,
            command=command,
            args=args,
            start=start,
            end=end,
        )

    @property
    def elapsed_seconds(self) -> float:
        if self.start is None or self.end is None:
            return 0.0
        return (self.end - self.start).total_seconds()
