"""Text composition and transformation commands."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskweave.commands.base import TransformCommand, ref_labels, resolve_text, token_decorators
from taskweave.commands.io import resolve_path
from taskweave.flow.references import Reference

if TYPE_CHECKING:
    from taskweave.flow.context import FlowContext

TOKEN_PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}\}")


class SetCommand:
    """Store a literal value, optionally under a token."""

    def __init__(self, value: Any, token: str | None = None) -> None:
        self.value = value
        self.token = token

    def execute(self, flow: FlowContext) -> list[Reference]:
        return [flow.store(self.value, token_decorators(self.token))]


class JoinCommand(TransformCommand):
    """Concatenate literal strings and referenced values."""

    transform_type = "Join"

    def __init__(
        self,
        parts: Sequence[str | Reference],
        *,
        separator: str = "",
        token: str | None = None,
    ) -> None:
        super().__init__(token=token)
        self.parts = list(parts)
        self.separator = separator

    def input_tokens(self) -> list[str]:
        return ref_labels(*self.parts)

    def transform_params(self) -> dict[str, Any]:
        return {"separator": self.separator, "parts": len(self.parts)}

    def execute(self, flow: FlowContext) -> list[Reference]:
        joined = self.separator.join(resolve_text(flow, part) for part in self.parts)
        return [self.store_result(flow, joined)]


class ReplaceCommand(TransformCommand):
    """Replace ``{{key}}`` placeholders with literal values."""

    transform_type = "Replace"

    def __init__(
        self,
        template: Reference,
        replacements: Mapping[str, str],
        *,
        token: str | None = None,
    ) -> None:
        super().__init__(token=token)
        self.template = template
        self.replacements = dict(replacements)

    def input_tokens(self) -> list[str]:
        return [self.template.label]

    def transform_params(self) -> dict[str, Any]:
        return {"keys": sorted(self.replacements)}

    def execute(self, flow: FlowContext) -> list[Reference]:
        result = resolve_text(flow, self.template)
        for key, value in self.replacements.items():
            result = result.replace(f"{{{{{key}}}}}", value)
        return [self.store_result(flow, result)]


class TokenReplaceCommand(TransformCommand):
    """Fill ``{{name}}`` placeholders with the latest values stored under those tokens.

    The source is a reference, a path to a template file, or a template string.
    Placeholders naming unknown tokens are left untouched.
    """

    transform_type = "TokenReplace"

    def __init__(self, source: str | Path | Reference, *, token: str | None = None) -> None:
        super().__init__(token=token)
        self.source = source

    def input_tokens(self) -> list[str]:
        return ref_labels(self.source)

    def execute(self, flow: FlowContext) -> list[Reference]:
        template = self._load_template(flow)
        replaced: list[str] = []

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1).strip()
            value = flow.token(name)
            if value is None:
                return match.group(0)
            replaced.append(name)
            return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)

        result = TOKEN_PLACEHOLDER.sub(substitute, template)
        return [self.store_result(flow, result, extra_params={"replacedTokens": replaced})]

    def _load_template(self, flow: FlowContext) -> str:
        if isinstance(self.source, Reference):
            return resolve_text(flow, self.source)
        text = str(self.source)
        if "\n" not in text and _is_file(resolve_path(text, flow.cwd)):
            return resolve_path(text, flow.cwd).read_text("utf-8")
        return text


class TextTransformCommand(TransformCommand):
    """Apply a string function to referenced text."""

    transform_type = "TextTransform"

    def __init__(
        self,
        source: Reference,
        fn: Callable[[str], str],
        *,
        token: str | None = None,
    ) -> None:
        super().__init__(token=token)
        self.source = source
        self.fn = fn

    def input_tokens(self) -> list[str]:
        return [self.source.label]

    def transform_params(self) -> dict[str, Any]:
        return {"function": getattr(self.fn, "__name__", type(self.fn).__name__)}

    def execute(self, flow: FlowContext) -> list[Reference]:
        result = self.fn(resolve_text(flow, self.source))
        if not isinstance(result, str):
            raise TypeError(f"Text transform returned {type(result).__name__}, expected str")
        return [self.store_result(flow, result)]


class JsonTransformCommand(TransformCommand):
    """Parse referenced JSON, apply a function, store the result.

    String results are stored as text; anything else as JSON.
    """

    transform_type = "JsonTransform"

    def __init__(
        self,
        source: Reference,
        fn: Callable[[Any], Any],
        *,
        token: str | None = None,
    ) -> None:
        super().__init__(token=token)
        self.source = source
        self.fn = fn

    def input_tokens(self) -> list[str]:
        return [self.source.label]

    def transform_params(self) -> dict[str, Any]:
        return {"function": getattr(self.fn, "__name__", type(self.fn).__name__)}

    def execute(self, flow: FlowContext) -> list[Reference]:
        raw = flow.get(self.source)
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as error:
                raise ValueError(f"Failed to parse JSON: {error}") from error
        return [self.store_result(flow, self.fn(raw))]


class MatchCommand(TransformCommand):
    """Store regex capture groups, one reference per group, under the given tokens."""

    transform_type = "Match"

    def __init__(
        self,
        source: Reference,
        pattern: str | re.Pattern[str],
        tokens: Sequence[str],
    ) -> None:
        super().__init__()
        self.source = source
        self.pattern = pattern
        self.tokens = list(tokens)

    def input_tokens(self) -> list[str]:
        return [self.source.label]

    def transform_params(self) -> dict[str, Any]:
        return {"pattern": _pattern_text(self.pattern)}

    def execute(self, flow: FlowContext) -> list[Reference]:
        content = resolve_text(flow, self.source)
        regex = re.compile(self.pattern) if isinstance(self.pattern, str) else self.pattern
        match = regex.search(content)
        if match is None:
            raise ValueError(f"No match found for pattern: {regex.pattern}")
        refs: list[Reference] = []
        for index, (group, token) in enumerate(zip(match.groups(), self.tokens, strict=False)):
            if group is None:
                continue
            refs.append(
                self.store_result(flow, group, extra_params={"group": index + 1}, token=token),
            )
        return refs


class ExtractCommand(TransformCommand):
    """Extract the first (or every) regex match as newline-separated text.

    Matches with capture groups contribute their groups joined by ``", "``.
    """

    transform_type = "Extract"

    def __init__(
        self,
        source: Reference,
        pattern: str,
        *,
        extract_all: bool = False,
        token: str | None = None,
    ) -> None:
        super().__init__(token=token)
        self.source = source
        self.pattern = pattern
        self.extract_all = extract_all

    def input_tokens(self) -> list[str]:
        return [self.source.label]

    def transform_params(self) -> dict[str, Any]:
        return {"pattern": self.pattern, "all": self.extract_all}

    def execute(self, flow: FlowContext) -> list[Reference]:
        content = resolve_text(flow, self.source)
        try:
            regex = re.compile(self.pattern)
        except re.error as error:
            raise ValueError(f"Invalid regex pattern: {self.pattern}") from error

        if self.extract_all:
            matches = list(regex.finditer(content))
        else:
            first = regex.search(content)
            matches = [first] if first is not None else []
        result = "\n".join(_match_text(match) for match in matches)
        return [self.store_result(flow, result, extra_params={"matches": len(matches)})]


def _match_text(match: re.Match[str]) -> str:
    if match.groups():
        return ", ".join(group or "" for group in match.groups())
    return match.group(0)


def _pattern_text(pattern: str | re.Pattern[str]) -> str:
    return pattern if isinstance(pattern, str) else pattern.pattern


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False
