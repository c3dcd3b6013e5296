from __future__ import annotations

"""
Addressable JSON Document.

Wraps a JSON value tree loaded from a file (or from a cached object) and
exposes path-addressed get/set/remove. Saving writes the pretty-printed
tree back to the backing file and returns a diff against the text that
was originally loaded.
"""

import copy
import json
import logging
from typing import Any, Dict, List, Optional, Union

from tychonet.core.config.diff import render_diff
from tychonet.core.config.path_expr import Index, Key, PathSegment, render_path
from tychonet.domain.errors import (
    IndexOutOfBoundsError,
    NotFoundError,
    PersistenceError,
    RootDeleteError,
    TypeMismatchError,
)
from tychonet.infra.fs import atomic_write_text, read_text

logger = logging.getLogger(__name__)

JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]


def dump_json(value: Any) -> str:
    """Canonical pretty-printed serialization used for files and diffs."""
    return json.dumps(value, ensure_ascii=False, indent=2)


class ConfigDocument:
    """
    In-memory JSON document bound to a backing file.

    Not thread-safe: callers hold the state store lock while mutating a
    document that belongs to a workspace.
    """

    def __init__(self, path: str, value: JsonValue, original_text: Optional[str] = None) -> None:
        self._path = path
        self._value = value
        self._original = original_text if original_text is not None else dump_json(value)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: str) -> "ConfigDocument":
        """
        Load and parse a JSON file.

        Raises:
            PersistenceError: If the file cannot be read or is not valid JSON.
        """
        text = read_text(path)
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"failed to parse config file ({e})", path) from e
        # Diff against the normalized form so formatting-only differences vanish.
        return cls(path, value, dump_json(value))

    @classmethod
    def from_object(cls, path: str, value: JsonValue) -> "ConfigDocument":
        """Wrap a cached object; the object is deep-copied."""
        return cls(path, copy.deepcopy(value))

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def value(self) -> JsonValue:
        return self._value

    def as_object(self) -> JsonValue:
        """Export a detached copy of the root for caching in a workspace."""
        return copy.deepcopy(self._value)

    def to_text(self) -> str:
        return dump_json(self._value)

    # -------------------------------------------------------------------------
    # Path operations
    # -------------------------------------------------------------------------

    def get(self, segments: List[PathSegment]) -> JsonValue:
        """
        Resolve a path.

        Raises:
            TypeMismatchError: A segment walked through the wrong node type.
            NotFoundError: A key or index does not exist.
        """
        current = self._value
        for depth, seg in enumerate(segments):
            walked = render_path(segments[:depth + 1])
            container = _expect_container(current, seg, render_path(segments[:depth]))
            if isinstance(seg, Key):
                if seg.name not in container:
                    raise NotFoundError(walked)
                current = container[seg.name]
            else:
                if seg.value >= len(container):
                    raise NotFoundError(walked)
                current = container[seg.value]
        return current

    def set(self, segments: List[PathSegment], value: JsonValue) -> None:
        """
        Assign a value, creating intermediate objects for missing keys.

        Array segments may replace an existing element or append exactly at
        the current length.

        Raises:
            TypeMismatchError: A segment walked through the wrong node type.
            IndexOutOfBoundsError: An index is greater than the array length.
        """
        if not segments:
            self._value = value
            return

        # A failing walk leaves the document untouched.
        updated = copy.deepcopy(self._value)
        _assign(updated, segments, value)
        self._value = updated

    def remove(self, segments: List[PathSegment]) -> None:
        """
        Remove the value at a path.

        Removing something that is already absent, including anything below
        a missing parent, is a successful no-op.

        Raises:
            RootDeleteError: When called with an empty path.
            TypeMismatchError: A present node has the wrong container type.
        """
        if not segments:
            raise RootDeleteError()

        current = self._value
        for depth, seg in enumerate(segments):
            last = depth == len(segments) - 1
            container = _expect_container(current, seg, render_path(segments[:depth]))

            if isinstance(seg, Key):
                if seg.name not in container:
                    return
                if last:
                    del container[seg.name]
                    return
                current = container[seg.name]
            else:
                if seg.value >= len(container):
                    return
                if last:
                    del container[seg.value]
                    return
                current = container[seg.value]

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self) -> str:
        """
        Write the document to its backing file.

        Returns:
            str: Diff against the snapshot taken at load time.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        text = self.to_text()
        atomic_write_text(self._path, text)
        logger.debug(f"Config document saved to {self._path}")
        return render_diff(self._original, text)


def _expect_container(node: Any, seg: PathSegment, walked: str) -> Any:
    """Check that `node` is the container type `seg` addresses."""
    where = walked or "."
    if isinstance(seg, Index):
        if not isinstance(node, list):
            raise TypeMismatchError(where, "array")
    elif not isinstance(node, dict):
        raise TypeMismatchError(where, "object")
    return node


def _assign(root: Any, segments: List[PathSegment], value: JsonValue) -> None:
    current = root
    for depth, seg in enumerate(segments):
        last = depth == len(segments) - 1
        container = _expect_container(current, seg, render_path(segments[:depth]))

        if isinstance(seg, Key):
            if last:
                container[seg.name] = value
                return
            current = container.setdefault(seg.name, {})
            continue

        if seg.value > len(container):
            raise IndexOutOfBoundsError(render_path(segments[:depth + 1]), seg.value)
        if seg.value == len(container):
            container.append(value if last else {})
        elif last:
            container[seg.value] = value
        if last:
            return
        current = container[seg.value]
