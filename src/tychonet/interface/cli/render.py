from __future__ import annotations

"""
Reply Rendering.

Turns the structured replies of the operator facade into the text shown
to operators, and provides the console implementation of the Notifier
port used by the CLI.
"""

import json
import os
import sys
import threading
import time
from typing import IO, List, Optional

from tychonet.core.parsing.duration import format_duration
from tychonet.domain.constants import INLINE_OUTPUT_LIMIT
from tychonet.domain.models import (
    CommitInfo,
    ConfigKind,
    Origin,
    Reply,
    ReplyKind,
    ResetFreeze,
    ResetProgress,
    SelectionView,
    SourceStatus,
    WorkspaceChange,
)
from tychonet.domain.ports import Notifier
from tychonet.infra.fs import atomic_write_text
from tychonet.utils.i18n import i18n

CURRENT_MARKER = "•"


# -----------------------------------------------------------------------------
# REPLIES
# -----------------------------------------------------------------------------

def render_reply(reply: Reply, now: Optional[float] = None) -> str:
    """Render a reply as operator-facing text."""
    kind = reply.kind
    data = reply.data

    if kind is ReplyKind.ACCESS_DENIED:
        return i18n.t("reply.access_denied")
    if kind is ReplyKind.RESET_FROZEN:
        return render_freeze(data, time.time() if now is None else now)
    if kind is ReplyKind.RESET_ALREADY_RUNNING:
        return i18n.t("reply.already_running", network=data)
    if kind is ReplyKind.RESET_PROGRESS:
        return render_progress(data)
    if kind is ReplyKind.FREEZE:
        return i18n.t("reply.freeze")
    if kind is ReplyKind.UNFREEZE:
        return i18n.t("reply.unfreeze")
    if kind is ReplyKind.TIMINGS:
        return i18n.t("reply.timings", value=_pretty(data))
    if kind is ReplyKind.CONFIG_PARAM:
        return i18n.t(
            "reply.config_param",
            global_id=data.get("global_id"),
            seqno=data.get("seqno"),
            param=data.get("param"),
            value=_pretty(data.get("value")),
        )
    if kind is ReplyKind.ACCOUNT:
        state = data.get("state") or {}
        return i18n.t(
            "reply.account",
            address=data.get("address"),
            status=state.get("type", "unknown"),
            value=_pretty(state),
        )
    if kind is ReplyKind.COMMIT:
        return render_commit(data) if data is not None else i18n.t("reply.no_commit")
    if kind is ReplyKind.CONFIG_VALUE:
        return i18n.t("reply.config_value", value=data)
    if kind is ReplyKind.CONFIG_UPDATED:
        title = reply.config_kind.title if reply.config_kind else "Config"
        return i18n.t("reply.config_updated", title=title, diff=data)
    if kind is ReplyKind.WORKSPACE_CHANGED:
        return render_workspace_change(data)
    if kind is ReplyKind.WORKSPACE_DELETED:
        return i18n.t("reply.workspace_deleted", name=data)
    if kind in (ReplyKind.WORKSPACES, ReplyKind.NETWORKS):
        return render_selection(data)
    if kind is ReplyKind.NETWORK_CHANGED:
        return i18n.t("reply.network_changed", name=data)
    if kind is ReplyKind.RESET_TYPE:
        return i18n.t("reply.reset_type", value=data.value)
    return i18n.t("reply.error", error=data)


def render_freeze(freeze: ResetFreeze, now: float) -> str:
    text = i18n.t("reply.frozen", remaining=format_duration(freeze.remaining(now)))
    if freeze.reason:
        text += i18n.t("reply.frozen_reason", reason=freeze.reason)
    return text


def render_commit(info: CommitInfo) -> str:
    lines: List[str] = [f"> {line}" for line in info.message.splitlines()]
    lines.append(i18n.t("reply.commit", sha=info.sha))
    if info.branches:
        branches = ", ".join(f"`{name}`" for name in info.branches)
        lines.append(i18n.t("reply.branches", branches=branches))
    if info.html_url:
        lines.append(info.html_url)
    return "\n".join(lines).rstrip("\n")


def render_progress(progress: ResetProgress) -> str:
    """Title for the current stage followed by the elapsed time and commit."""
    stage = progress.stage.value
    if progress.failed:
        title = i18n.t(f"reset.failed.{stage}")
        error = progress.error or ""
        if len(error) <= INLINE_OUTPUT_LIMIT:
            title = i18n.t("reset.failure_inline", title=title, error=error)
        else:
            title = i18n.t("reset.failure_attached", title=title)
    else:
        title = i18n.t(f"reset.{stage}")

    body = [
        i18n.t("reset.elapsed", elapsed=format_duration(int(progress.elapsed))),
        i18n.t("reset.network", network=progress.network),
    ]
    if progress.commit_info is None:
        body.append(i18n.t("reset.ref", ref=progress.commit_ref))
    else:
        body.append(render_commit(progress.commit_info))
    return f"{title.rstrip()}\n" + "\n".join(body)


def render_workspace_change(change: WorkspaceChange) -> str:
    lines = [i18n.t("reply.workspace_changed", name=change.name)]
    for kind in ConfigKind:
        status = change.sources.get(kind, SourceStatus.UNCHANGED)
        if status is SourceStatus.COPIED:
            lines.append(i18n.t("reply.workspace_copied", title=kind.title, source=change.copied_from))
        elif status is SourceStatus.FROM_FILE:
            lines.append(i18n.t("reply.workspace_from_file", title=kind.title))
        else:
            lines.append(i18n.t("reply.workspace_unchanged", title=kind.title))
    return "\n".join(lines)


def render_selection(view: SelectionView) -> str:
    return "\n".join(
        f"{CURRENT_MARKER if item == view.current else ' '} {item}" for item in view.items
    )


def _pretty(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2)


# -----------------------------------------------------------------------------
# CONSOLE NOTIFIER
# -----------------------------------------------------------------------------

class ConsoleNotifier(Notifier):
    """
    Prints replies to a text stream.

    Attachments are written as files into `attachments_dir` (the current
    directory by default). Output from reset workers and freeze timers is
    serialized with a lock.
    """

    def __init__(self, stream: Optional[IO[str]] = None, attachments_dir: Optional[str] = None) -> None:
        self._stream = stream or sys.stdout
        self._attachments_dir = attachments_dir or os.getcwd()
        self._lock = threading.Lock()

    def notify(self, origin: Origin, reply: Reply) -> None:
        self._write(render_reply(reply))

    def attach(self, origin: Origin, name: str, content: str) -> None:
        path = os.path.join(self._attachments_dir, name)
        atomic_write_text(path, content)
        self._write(i18n.t("cli.status.attached", name=name, path=path))

    def _write(self, text: str) -> None:
        with self._lock:
            print(text, file=self._stream, flush=True)
