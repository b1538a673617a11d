"""Plain-text artifact format with an optional YAML metadata header.

Layout when the reference carries metadata::

    ---
    transforms:
    - type: ...
    ---

    <raw content>

Headerless artifacts hold the raw content only. ``render_artifact`` and
``parse_artifact`` are exact inverses.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import yaml

from taskweave.flow.references import ContentType, TransformMetadata
from taskweave.flow.timestamps import from_iso

HEADER_FENCE = "---\n"
_HEADER_END = "\n---\n\n"
_HEADER_ROOT_KEY = "transforms"


@dataclass(slots=True)
class ParsedArtifact:
    """Artifact split into metadata blocks and raw content."""

    metadata: list[TransformMetadata]
    content: str


def encode_value(value: Any) -> tuple[str, ContentType]:
    """Serialize a value for storage; strings are kept verbatim.

    Other values must survive a JSON round trip unchanged: tuples, sets,
    non-string keys and NaN are rejected with ``TypeError``.
    """

    if isinstance(value, str):
        return value, ContentType.TEXT
    try:
        content = json.dumps(value, ensure_ascii=False, indent=2, allow_nan=False)
    except (TypeError, ValueError) as error:
        raise TypeError(
            f"Value of type {type(value).__name__} is not JSON-serializable",
        ) from error
    if json.loads(content) != value:
        raise TypeError(
            f"Value of type {type(value).__name__} does not round-trip through JSON "
            "(use lists and string keys)",
        )
    return content, ContentType.JSON


def decode_value(content: str, content_type: ContentType) -> Any:
    """Inverse of ``encode_value``."""

    if content_type is ContentType.JSON:
        return json.loads(content)
    return content


def render_artifact(content: str, metadata: tuple[TransformMetadata, ...] | list) -> str:
    """Build artifact text; the header is written only when metadata is present."""

    if not metadata:
        return content
    try:
        header = yaml.safe_dump(
            {_HEADER_ROOT_KEY: [metadata_to_dict(block) for block in metadata]},
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
        )
    except yaml.YAMLError as error:
        raise TypeError(f"Transform metadata is not serializable: {error}") from error
    return f"{HEADER_FENCE}{header}---\n\n{content}"


def parse_artifact(text: str, *, has_header: bool | None = None) -> ParsedArtifact:
    """Split artifact text into metadata and content.

    ``has_header`` forces the decision when the caller knows whether the
    artifact was written with metadata; otherwise a header is recognized only
    when it parses as a ``transforms`` block.
    """

    if has_header is False or not text.startswith(HEADER_FENCE):
        if has_header:
            raise ValueError("Artifact is missing its metadata header")
        return ParsedArtifact(metadata=[], content=text)

    end = text.find(_HEADER_END, len(HEADER_FENCE) - 1)
    if end < 0:
        if has_header:
            raise ValueError("Artifact metadata header is not terminated")
        return ParsedArtifact(metadata=[], content=text)

    header_text = text[len(HEADER_FENCE) : end + 1]
    try:
        raw = yaml.safe_load(header_text)
    except yaml.YAMLError as error:
        if has_header:
            raise ValueError(f"Invalid artifact metadata header: {error}") from error
        return ParsedArtifact(metadata=[], content=text)

    if not isinstance(raw, dict) or not isinstance(raw.get(_HEADER_ROOT_KEY), list):
        if has_header:
            raise ValueError("Artifact metadata header must contain a transforms list")
        return ParsedArtifact(metadata=[], content=text)

    return ParsedArtifact(
        metadata=[metadata_from_dict(item) for item in raw[_HEADER_ROOT_KEY]],
        content=text[end + len(_HEADER_END) :],
    )


def metadata_to_dict(block: TransformMetadata) -> dict[str, Any]:
    """Serialize one metadata block for the header."""

    return {
        "type": block.type,
        "inputs": list(block.inputs),
        "params": block.params,
        "timestamp": block.timestamp.isoformat(),
    }


def metadata_from_dict(raw: object) -> TransformMetadata:
    """Deserialize and validate one metadata block."""

    if not isinstance(raw, dict):
        raise TypeError("transforms entry must be a mapping")
    block_type = raw.get("type")
    inputs = raw.get("inputs", [])
    params = raw.get("params", {})
    timestamp = raw.get("timestamp")
    if not isinstance(block_type, str) or not block_type.strip():
        raise ValueError("transforms.type must be a non-empty string")
    if not isinstance(inputs, list) or not all(isinstance(item, str) for item in inputs):
        raise TypeError("transforms.inputs must be a list of strings")
    if not isinstance(params, dict):
        raise TypeError("transforms.params must be a mapping")
    if not isinstance(timestamp, str):
        raise TypeError("transforms.timestamp must be an ISO string")
    return TransformMetadata(
        type=block_type,
        inputs=tuple(inputs),
        params=params,
        timestamp=from_iso(timestamp),
    )
