from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import allure
import pytest

from taskweave.flow.decorators import (
    ExtensionDecorator,
    FileNameDecorator,
    MetadataDecorator,
    TimestampedFileNameDecorator,
    TokenDecorator,
    apply_decorators,
    safe_name,
)
from taskweave.flow.errors import DecorationError
from taskweave.flow.references import Reference, TaskLog, TransformMetadata, new_reference

pytestmark = [
    allure.epic("Reference Engine"),
    allure.feature("Decorator Pipeline"),
]

_STAMP = datetime(2025, 1, 2, 3, 4, 5, 678_000, tzinfo=UTC)


def _base() -> Reference:
    return new_reference(timestamp=_STAMP)


class _Boom:
    def decorate(self, ref: Reference) -> Reference:
        raise RuntimeError("decorator exploded")


class _NotARef:
    def decorate(self, ref: Reference) -> str:
        return "nope"


class _ChangesId:
    def decorate(self, ref: Reference) -> Reference:
        return replace(ref, id="other")


def test_default_name_is_timestamp_and_id() -> None:
    ref = apply_decorators(_base(), [])

    assert ref.file_name == f"20250102T030405-678-{ref.id}.txt"
    assert ref.token is None


def test_default_name_uses_token_and_extension() -> None:
    ref = apply_decorators(_base(), [TokenDecorator("greeting")], default_extension="md")

    assert ref.file_name == "20250102T030405-678-greeting.md"
    assert ref.token == "greeting"


def test_last_decorator_wins_for_token_and_file_name() -> None:
    ref = apply_decorators(
        _base(),
        [
            TokenDecorator("first"),
            FileNameDecorator("first.txt"),
            TokenDecorator("second"),
            FileNameDecorator("second.txt"),
        ],
    )

    assert ref.token == "second"
    assert ref.file_name == "second.txt"


def test_decorator_order_changes_the_result() -> None:
    base = _base()
    a = FileNameDecorator("a.txt")
    b = TimestampedFileNameDecorator("b", "md")

    forward = apply_decorators(base, [a, b])
    backward = apply_decorators(base, [b, a])

    assert forward.file_name == "20250102T030405-678-b.md"
    assert backward.file_name == "a.txt"
    assert forward != backward


def test_decorators_do_not_mutate_input_reference() -> None:
    base = _base()

    decorated = apply_decorators(base, [TokenDecorator("t"), FileNameDecorator("x.txt")])

    assert base.token is None
    assert base.file_name is None
    assert decorated.id == base.id


def test_metadata_blocks_accumulate_in_order() -> None:
    first = TransformMetadata(type="Read")
    second = TransformMetadata(type="Join", inputs=("a", "b"))

    ref = apply_decorators(_base(), [MetadataDecorator(first), MetadataDecorator(second)])

    assert [block.type for block in ref.metadata] == ["Read", "Join"]


def test_extension_decorator_rewrites_existing_name() -> None:
    ref = apply_decorators(_base(), [FileNameDecorator("report.txt"), ExtensionDecorator(".json")])

    assert ref.file_name == "report.json"


@pytest.mark.parametrize("decorator", [_Boom(), _NotARef(), _ChangesId()])
def test_misbehaving_decorator_raises_decoration_error(decorator) -> None:
    with pytest.raises(DecorationError):
        apply_decorators(_base(), [TokenDecorator("ok"), decorator])


def test_invalid_decorator_arguments_are_rejected() -> None:
    with pytest.raises(ValueError, match="Token"):
        TokenDecorator("  ")
    with pytest.raises(ValueError, match="Invalid artifact file name"):
        FileNameDecorator("../escape.txt")


def test_safe_name_replaces_path_characters() -> None:
    assert safe_name("my token/with spaces") == "my_token_with_spaces"
    assert safe_name("...") == "value"


def test_label_prefers_token() -> None:
    base = _base()

    assert base.label == base.id
    assert base.with_token("named").label == "named"


def test_task_log_copies_reference_and_measures_elapsed_time() -> None:
    ref = apply_decorators(_base(), [TokenDecorator("t")])
    start = _STAMP
    end = _STAMP + timedelta(milliseconds=250)

    log = TaskLog.from_reference(ref, command="SetCommand", args=("value=x",), start=start, end=end)

    assert log.id == ref.id
    assert log.file_name == ref.file_name
    assert log.token == "t"
    assert log.command == "SetCommand"
    assert log.elapsed_seconds == pytest.approx(0.25)
