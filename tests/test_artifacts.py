from __future__ import annotations

from datetime import UTC, datetime, timedelta

import allure
import pytest

from taskweave.flow.artifacts import (
    decode_value,
    encode_value,
    parse_artifact,
    render_artifact,
)
from taskweave.flow.references import ContentType, TransformMetadata
from taskweave.flow.timestamps import MonotonicClock, format_timestamp

pytestmark = [
    allure.epic("Reference Engine"),
    allure.feature("Artifact Format"),
]

_STAMP = datetime(2025, 6, 1, 12, 0, 0, 5_000, tzinfo=UTC)


def test_headerless_artifact_is_raw_content() -> None:
    assert render_artifact("plain text", ()) == "plain text"
    parsed = parse_artifact("plain text", has_header=False)
    assert parsed.metadata == []
    assert parsed.content == "plain text"


def test_header_round_trip_keeps_content_exact() -> None:
    block = TransformMetadata(
        type="Join",
        inputs=("greeting", "name"),
        params={"separator": ", "},
        timestamp=_STAMP,
    )
    content = "---\nlooks like a fence\n\n---\n\ntrailing\n"

    text = render_artifact(content, (block,))
    parsed = parse_artifact(text, has_header=True)

    assert text.startswith("---\ntransforms:\n")
    assert parsed.content == content
    assert parsed.metadata == [block]


def test_header_is_detected_without_a_hint() -> None:
    text = render_artifact("body", (TransformMetadata(type="Read", timestamp=_STAMP),))

    parsed = parse_artifact(text)

    assert parsed.content == "body"
    assert parsed.metadata[0].type == "Read"


def test_front_matter_lookalike_without_transforms_is_content() -> None:
    text = "---\ntitle: notes\n---\n\nbody"

    assert parse_artifact(text).content == text


def test_missing_header_is_an_error_when_expected() -> None:
    with pytest.raises(ValueError, match="missing its metadata header"):
        parse_artifact("no header", has_header=True)


def test_strings_are_text_and_other_values_are_json() -> None:
    assert encode_value("hello") == ("hello", ContentType.TEXT)

    content, content_type = encode_value({"items": [1, 2], "name": "ü"})

    assert content_type is ContentType.JSON
    assert "ü" in content
    assert decode_value(content, content_type) == {"items": [1, 2], "name": "ü"}


def test_unserializable_values_raise_type_error() -> None:
    with pytest.raises(TypeError, match="not JSON-serializable"):
        encode_value(object())


@pytest.mark.parametrize("value", [(1, 2), {1: "a"}, [{"pair": (1, 2)}]])
def test_values_that_do_not_read_back_equal_are_rejected(value: object) -> None:
    with pytest.raises(TypeError, match="does not round-trip"):
        encode_value(value)


def test_timestamp_format_sorts_lexicographically() -> None:
    earlier = format_timestamp(_STAMP)
    later = format_timestamp(_STAMP + timedelta(milliseconds=1))

    assert earlier == "20250601T120000-005"
    assert earlier < later


def test_monotonic_clock_never_repeats_a_millisecond() -> None:
    clock = MonotonicClock(now=lambda: _STAMP)

    stamps = [clock.tick() for _ in range(3)]

    assert stamps == [
        _STAMP,
        _STAMP + timedelta(milliseconds=1),
        _STAMP + timedelta(milliseconds=2),
    ]
