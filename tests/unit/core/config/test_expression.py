from __future__ import annotations

"""
Unit tests for operator edit expressions (`delete <path>`, `<path> = <json>`).
"""

from pathlib import Path

import pytest

from tychonet.core.config.document import ConfigDocument
from tychonet.core.config.expression import apply_edit, parse_edit_expression
from tychonet.core.config.path_expr import Index, Key
from tychonet.domain.errors import ExpressionError, PathSyntaxError, RootDeleteError


def test_parse_assignment_with_json_value() -> None:
    """TC-01: Any JSON literal or structure is accepted as the value."""
    edit = parse_edit_expression('logger.outputs[0] = {"type": "stdout", "level": 3}')

    assert edit.delete is False
    assert edit.path == [Key("logger"), Key("outputs"), Index(0)]
    assert edit.value == {"type": "stdout", "level": 3}


@pytest.mark.parametrize("text,value", [
    ("a = 1", 1),
    ("a = -2.5", -2.5),
    ('a = "s=t"', "s=t"),
    ("a = null", None),
    ("a = [true, false]", [True, False]),
])
def test_parse_assignment_literals(text, value) -> None:
    """TC-02: Scalars, null and arrays; only the first `=` splits."""
    assert parse_edit_expression(text).value == value


def test_parse_delete() -> None:
    """TC-03: `delete` prefix requests removal."""
    edit = parse_edit_expression("  delete .storage.root_dir ")
    assert edit.delete is True
    assert edit.path == [Key("storage"), Key("root_dir")]


def test_key_named_delete_can_be_assigned() -> None:
    """TC-04: `delete = ...` targets a key literally named delete."""
    edit = parse_edit_expression("delete = 1")
    assert edit.delete is False
    assert edit.path == [Key("delete")]


def test_delete_without_path_is_root_delete() -> None:
    """TC-05: Deleting the root is rejected at parse time."""
    with pytest.raises(RootDeleteError):
        parse_edit_expression("delete")


def test_missing_equals() -> None:
    """TC-06: Anything else without `=` is malformed."""
    with pytest.raises(ExpressionError):
        parse_edit_expression("logger.level debug")


def test_invalid_json() -> None:
    """TC-07: The value must be valid JSON."""
    with pytest.raises(ExpressionError):
        parse_edit_expression("logger.level = debug")


def test_invalid_path() -> None:
    """TC-08: Path errors surface unchanged."""
    with pytest.raises(PathSyntaxError):
        parse_edit_expression("a[x] = 1")


def test_apply_edit(tmp_path: Path) -> None:
    """TC-09: Applying set and delete edits to a document."""
    doc = ConfigDocument.from_object(str(tmp_path / "c.json"), {"a": {"b": 1}})

    apply_edit(doc, parse_edit_expression("a.c = [1]"))
    apply_edit(doc, parse_edit_expression("delete a.b"))

    assert doc.value == {"a": {"c": [1]}}
