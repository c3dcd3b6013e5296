from __future__ import annotations

"""
Operator edit expressions.

    delete <path>        remove the value at <path>
    <path> = <json>      assign any JSON literal or structure to <path>
"""

import json
from dataclasses import dataclass
from typing import Any

from tychonet.core.config.document import ConfigDocument
from tychonet.core.config.path_expr import PathExpression, parse_path
from tychonet.domain.errors import ExpressionError, RootDeleteError

DELETE_KEYWORD = "delete"


@dataclass(frozen=True)
class EditExpression:
    path: PathExpression
    delete: bool = False
    value: Any = None


def parse_edit_expression(expr: str) -> EditExpression:
    """
    Parse an edit expression.

    Raises:
        ExpressionError: Missing `=` or invalid JSON value.
        PathSyntaxError: Malformed path.
        RootDeleteError: `delete` without a path.
    """
    text = (expr or "").strip()

    parts = text.split(None, 1)
    tail = parts[1] if len(parts) > 1 else ""
    # `delete = ...` assigns to a key literally named "delete"
    if parts and parts[0] == DELETE_KEYWORD and not tail.startswith("="):
        path = parse_path(tail)
        if not path:
            raise RootDeleteError()
        return EditExpression(path=path, delete=True)

    path_text, sep, value_text = text.partition("=")
    if not sep:
        raise ExpressionError("expected an expression: `path = json` or `delete path`")

    try:
        value = json.loads(value_text)
    except json.JSONDecodeError as e:
        raise ExpressionError(f"invalid JSON value: {e}") from e

    return EditExpression(path=parse_path(path_text), value=value)


def apply_edit(document: ConfigDocument, edit: EditExpression) -> None:
    if edit.delete:
        document.remove(edit.path)
    else:
        document.set(edit.path, edit.value)
