"""Reference decorators applied, in order, before a value is persisted.

Chain contract: decorators fold left to right over the base reference. When
more than one decorator sets the token or the file name, the one applied last
wins. Metadata blocks accumulate in chain order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import reduce
from typing import Protocol, runtime_checkable

from taskweave.flow.errors import DecorationError
from taskweave.flow.references import Reference, TransformMetadata
from taskweave.flow.timestamps import format_timestamp

DEFAULT_EXTENSION = "txt"
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@runtime_checkable
class RefDecorator(Protocol):
    """Pure transform producing a new reference from an existing one."""

    def decorate(self, ref: Reference) -> Reference:
        """Return a decorated copy; never mutate ``ref``."""
        raise NotImplementedError


class TokenDecorator:
    """Attach a human-chosen token for later lookup."""

    def __init__(self, token: str) -> None:
        if not token.strip():
            raise ValueError("Token must be a non-empty string")
        self.token = token

    def decorate(self, ref: Reference) -> Reference:
        return ref.with_token(self.token)

    def __repr__(self) -> str:
        return f"TokenDecorator({self.token!r})"


class FileNameDecorator:
    """Use an explicit artifact file name."""

    def __init__(self, file_name: str) -> None:
        if not file_name.strip() or "/" in file_name or "\\" in file_name:
            raise ValueError(f"Invalid artifact file name: {file_name!r}")
        self.file_name = file_name

    def decorate(self, ref: Reference) -> Reference:
        return ref.with_file_name(self.file_name)

    def __repr__(self) -> str:
        return f"FileNameDecorator({self.file_name!r})"


class TimestampedFileNameDecorator:
    """Name the artifact ``{timestamp}-{token_or_id}.{extension}``.

    The timestamp comes from the reference, so names sort in store order.
    """

    def __init__(self, token_or_id: str, extension: str = DEFAULT_EXTENSION) -> None:
        self.token_or_id = token_or_id
        self.extension = extension.lstrip(".") or DEFAULT_EXTENSION

    def decorate(self, ref: Reference) -> Reference:
        stem = safe_name(self.token_or_id)
        return ref.with_file_name(f"{format_timestamp(ref.timestamp)}-{stem}.{self.extension}")

    def __repr__(self) -> str:
        return f"TimestampedFileNameDecorator({self.token_or_id!r}, {self.extension!r})"


class ExtensionDecorator:
    """Change the extension of the artifact name (default name when none is set yet)."""

    def __init__(self, extension: str) -> None:
        self.extension = extension.lstrip(".")
        if not self.extension:
            raise ValueError("Extension must be a non-empty string")

    def decorate(self, ref: Reference) -> Reference:
        if ref.file_name is None:
            return TimestampedFileNameDecorator(ref.label, self.extension).decorate(ref)
        stem, _, _ = ref.file_name.rpartition(".")
        return ref.with_file_name(f"{stem or ref.file_name}.{self.extension}")


class MetadataDecorator:
    """Append one transform metadata block; written as the artifact header."""

    def __init__(self, metadata: TransformMetadata) -> None:
        self.metadata = metadata

    def decorate(self, ref: Reference) -> Reference:
        return ref.with_metadata(self.metadata)


def safe_name(value: str) -> str:
    """Filesystem-safe name fragment."""

    cleaned = _UNSAFE_NAME_CHARS.sub("_", value.strip()).strip("._")
    return cleaned or "value"


def apply_decorators(
    ref: Reference,
    decorators: Iterable[RefDecorator],
    *,
    default_extension: str = DEFAULT_EXTENSION,
) -> Reference:
    """Left-fold ``decorators`` over ``ref``, then apply the default naming fallback.

    Raises ``DecorationError`` if a decorator fails, returns something other than a
    reference, or changes the reference id.
    """

    decorated = reduce(_apply_one, decorators, ref)
    if decorated.file_name is None:
        decorated = TimestampedFileNameDecorator(decorated.label, default_extension).decorate(
            decorated,
        )
    return decorated


def _apply_one(ref: Reference, decorator: RefDecorator) -> Reference:
    try:
        result = decorator.decorate(ref)
    except Exception as error:
        raise DecorationError(f"Decorator {decorator!r} failed: {error}") from error
    if not isinstance(result, Reference):
        raise DecorationError(
            f"Decorator {decorator!r} returned {type(result).__name__}, expected Reference",
        )
    if result.id != ref.id:
        raise DecorationError(f"Decorator {decorator!r} changed reference id {ref.id}")
    return result
