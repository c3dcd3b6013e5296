from __future__ import annotations

"""
Diff Renderer.

Produces a compact, human-oriented line diff between two snapshots of a
pretty-printed document: changed lines with up to three lines of context
around them, distant change blocks separated by an elision marker.
"""

import difflib
from typing import List

from tychonet.domain.constants import DIFF_CONTEXT_LINES, DIFF_ELISION, DIFF_UNCHANGED


def render_diff(old: str, new: str, context: int = DIFF_CONTEXT_LINES) -> str:
    """
    Render a bounded-context diff between two texts.

    Args:
        old: Text before the change.
        new: Text after the change.
        context: Unchanged lines kept around each change block.

    Returns:
        str: The diff, or the literal `unchanged` for identical inputs.
    """
    if old == new:
        return DIFF_UNCHANGED

    old_lines = old.splitlines()
    new_lines = new.splitlines()

    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    blocks: List[str] = []

    for group in matcher.get_grouped_opcodes(context):
        lines: List[str] = []
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                lines.extend(f"  {line}" for line in old_lines[i1:i2])
                continue
            if tag in ("replace", "delete"):
                lines.extend(f"- {line}" for line in old_lines[i1:i2])
            if tag in ("replace", "insert"):
                lines.extend(f"+ {line}" for line in new_lines[j1:j2])
        blocks.append("\n".join(lines))

    # Texts differing only in a trailing newline produce no line-level change.
    if not blocks:
        return DIFF_UNCHANGED

    return f"\n{DIFF_ELISION}\n".join(blocks)
