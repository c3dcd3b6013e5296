from __future__ import annotations

"""
Path Expression Parser.

Turns operator path strings such as `logger.outputs[1]` or `[0][2]` into
an ordered list of typed segments. Keys are separated by dots outside of
brackets, array indices are written in brackets. Surrounding whitespace
and a single leading dot are tolerated.
"""

from dataclasses import dataclass
from typing import List, Sequence, Union

from tychonet.domain.errors import PathSyntaxError


# -----------------------------------------------------------------------------
# SEGMENT TYPES
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Key:
    """Object member access."""
    name: str


@dataclass(frozen=True)
class Index:
    """Array element access."""
    value: int


PathSegment = Union[Key, Index]
PathExpression = List[PathSegment]


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def parse_path(text: str) -> PathExpression:
    """
    Parse a path expression into segments.

    An empty (or whitespace-only) expression addresses the document root
    and yields an empty list.

    Args:
        text: Raw path expression.

    Returns:
        PathExpression: Ordered segments.

    Raises:
        PathSyntaxError: On empty keys, empty/non-numeric indices or
            unbalanced brackets.
    """
    s = (text or "").strip()
    if s.startswith("."):
        s = s[1:]
    if not s.strip():
        return []

    segments: PathExpression = []
    for position, chunk in enumerate(_split_chunks(s, text)):
        segments.extend(_parse_chunk(chunk, first=position == 0, text=text))
    return segments


def render_path(segments: Sequence[PathSegment]) -> str:
    """Render segments back into canonical `a.b[0]` form."""
    out: List[str] = []
    for seg in segments:
        if isinstance(seg, Index):
            out.append(f"[{seg.value}]")
        else:
            out.append(f".{seg.name}" if out else seg.name)
    return "".join(out)


# -----------------------------------------------------------------------------
# TOKENIZER
# -----------------------------------------------------------------------------

def _split_chunks(s: str, text: str) -> List[str]:
    """Split on dots that are not inside brackets."""
    chunks: List[str] = []
    current: List[str] = []
    in_bracket = False

    for ch in s:
        if ch == "[":
            if in_bracket:
                raise PathSyntaxError("nested '[' in path", text)
            in_bracket = True
        elif ch == "]":
            if not in_bracket:
                raise PathSyntaxError("unexpected ']' in path", text)
            in_bracket = False
        elif ch == "." and not in_bracket:
            chunks.append("".join(current))
            current = []
            continue
        current.append(ch)

    if in_bracket:
        raise PathSyntaxError("unterminated '[' in path", text)

    chunks.append("".join(current))
    return chunks


def _parse_chunk(chunk: str, first: bool, text: str) -> PathExpression:
    """Parse `key[0][1]`; the key may only be omitted in the first chunk."""
    open_at = chunk.find("[")
    head = chunk if open_at < 0 else chunk[:open_at]
    name = head.strip()

    segments: PathExpression = []
    if name:
        segments.append(Key(name))
    elif open_at < 0 or not first:
        raise PathSyntaxError("empty path items are not allowed", text)

    if open_at < 0:
        return segments

    rest = chunk[open_at:]
    pos = 0
    while pos < len(rest):
        ch = rest[pos]
        if ch.isspace():
            pos += 1
            continue
        if ch != "[":
            raise PathSyntaxError(f"unexpected {rest[pos:].strip()!r} after index", text)

        close_at = rest.index("]", pos)
        segments.append(Index(_parse_index(rest[pos + 1:close_at], text)))
        pos = close_at + 1

    return segments


def _parse_index(raw: str, text: str) -> int:
    value = raw.strip()
    if not value:
        raise PathSyntaxError("empty array index", text)
    if not (value.isascii() and value.isdigit()):
        raise PathSyntaxError(f"invalid array index: {value!r}", text)
    return int(value)
