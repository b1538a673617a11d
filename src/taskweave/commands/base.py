"""Command protocol and shared helpers for built-in commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol

from taskweave.flow.decorators import MetadataDecorator, RefDecorator, TokenDecorator
from taskweave.flow.references import Reference, TransformMetadata

if TYPE_CHECKING:
    from taskweave.flow.context import FlowContext


class Command(Protocol):
    """Unit of work run through ``FlowContext.run``.

    ``execute`` stores what it produces and returns the references (zero, one or
    many), never raw values. It may compose other commands via ``flow.run``.
    """

    def execute(self, flow: FlowContext) -> list[Reference]:
        """Run against ``flow`` and return produced references."""
        raise NotImplementedError


def token_decorators(token: str | None) -> list[RefDecorator]:
    return [TokenDecorator(token)] if token else []


def resolve_text(flow: FlowContext, source: str | Reference) -> str:
    """Literal strings pass through; references are resolved to text."""

    if isinstance(source, Reference):
        value = flow.get(source)
        return value if isinstance(value, str) else _as_text(value)
    return source


def _as_text(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2)


class TransformCommand:
    """Base for commands whose output records the transform that produced it.

    Subclasses set ``transform_type`` and implement ``execute``; results go
    through ``store_result`` which attaches a metadata block (type, input
    tokens, params) and the optional output token.
    """

    transform_type = "Transform"

    def __init__(self, *, token: str | None = None) -> None:
        self.token = token

    def input_tokens(self) -> list[str]:
        return []

    def transform_params(self) -> dict[str, Any]:
        return {}

    def store_result(
        self,
        flow: FlowContext,
        value: Any,
        *,
        extra_params: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> Reference:
        params = {**self.transform_params(), **(extra_params or {})}
        metadata = TransformMetadata(
            type=self.transform_type,
            inputs=tuple(self.input_tokens()),
            params=params,
        )
        decorators: list[RefDecorator] = [MetadataDecorator(metadata)]
        decorators.extend(token_decorators(token if token is not None else self.token))
        return flow.store(value, decorators)


def ref_labels(*sources: object) -> list[str]:
    """Labels of the references among ``sources``, for transform metadata."""

    return [source.label for source in sources if isinstance(source, Reference)]
