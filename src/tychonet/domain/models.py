from __future__ import annotations

"""
Domain Data Models.

Dataclasses describing the persisted state (commit info, freezes,
workspaces), reset parameters and the outcome objects exchanged between
the services and the interface layers. Serialization helpers keep the
on-disk JSON shape stable and tolerant to partial input.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from tychonet.domain.constants import (
    DEFAULT_BUILD_PROFILE,
    DEFAULT_COMMIT,
    DEFAULT_NODE_COUNT,
)

# -----------------------------------------------------------------------------
# ENUMERATIONS
# -----------------------------------------------------------------------------

class ResetType(Enum):
    """Reset playbook mode."""
    FULL = "full"
    RESTART = "restart"

    @classmethod
    def parse(cls, value: str) -> "ResetType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown reset type: {value!r} (expected 'full' or 'restart')"
            ) from None


class ConfigKind(Enum):
    """Configuration documents that can be overlaid per workspace."""
    NODE = "node"
    LOGGER = "logger"
    ZEROSTATE = "zerostate"

    @property
    def state_key(self) -> str:
        return {
            ConfigKind.NODE: "node_config",
            ConfigKind.LOGGER: "logger_config",
            ConfigKind.ZEROSTATE: "zerostate",
        }[self]

    @property
    def title(self) -> str:
        return {
            ConfigKind.NODE: "Node config",
            ConfigKind.LOGGER: "Logger config",
            ConfigKind.ZEROSTATE: "Zerostate config",
        }[self]


class SourceStatus(Enum):
    """How a workspace config was populated by set_workspace."""
    UNCHANGED = "unchanged"
    COPIED = "copied"
    FROM_FILE = "from_file"


class ResetStage(Enum):
    """States of the reset workflow."""
    CHECKING_AUTH = "checking_auth"
    CHECKING_FREEZE = "checking_freeze"
    ACQUIRING_EXCLUSIVITY = "acquiring_exclusivity"
    RESOLVING_COMMIT = "resolving_commit"
    RUNNING_RESET = "running_reset"
    RUNNING_SETUP = "running_setup"
    COMMITTING = "committing"
    DONE = "done"


class ResetOutcome(Enum):
    """Terminal outcome of a reset invocation."""
    DONE = "done"
    DENIED = "denied"
    ALREADY_FROZEN = "already_frozen"
    ALREADY_RUNNING = "already_running"
    FAILED = "failed"


# -----------------------------------------------------------------------------
# PERSISTED MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Origin:
    """
    Identifies where a request came from.

    Attributes:
        chat_id: Conversation identifier, checked against the allow-list.
        message_id: Originating message, used to address replies.
        thread_id: Optional thread within the conversation.
    """
    chat_id: int
    message_id: int = 0
    thread_id: Optional[int] = None


@dataclass
class CommitInfo:
    sha: str
    html_url: str
    message: str
    branches: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "html_url": self.html_url,
            "message": self.message,
            "branches": list(self.branches),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommitInfo":
        return cls(
            sha=str(data.get("sha", "")),
            html_url=str(data.get("html_url", "")),
            message=str(data.get("message", "")),
            branches=[str(b) for b in data.get("branches", []) or []],
        )


@dataclass
class ResetFreeze:
    """
    An active block on resets for one network.

    Attributes:
        network: Network the freeze applies to.
        reason: Optional human explanation.
        timestamp_until: Absolute expiry, unix seconds.
        chat_id: Originating chat, notified on expiry.
        message_id: Originating message, replied to on expiry.
        message_thread_id: Optional originating thread.
    """
    network: str
    timestamp_until: int
    reason: Optional[str] = None
    chat_id: int = 0
    message_id: int = 0
    message_thread_id: Optional[int] = None

    @property
    def origin(self) -> Origin:
        return Origin(self.chat_id, self.message_id, self.message_thread_id)

    def remaining(self, now: float) -> int:
        return max(0, int(self.timestamp_until - now))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "reason": self.reason,
            "timestamp_until": self.timestamp_until,
            "chat_id": self.chat_id,
            "message_id": self.message_id,
            "message_thread_id": self.message_thread_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], network: str) -> "ResetFreeze":
        return cls(
            network=str(data.get("network") or network),
            reason=data.get("reason"),
            timestamp_until=int(data.get("timestamp_until") or 0),
            chat_id=int(data.get("chat_id") or 0),
            message_id=int(data.get("message_id") or 0),
            message_thread_id=data.get("message_thread_id"),
        )


@dataclass
class Workspace:
    """
    A named overlay of configuration documents plus a selected network.

    A missing cached document means the file on disk is authoritative.
    """
    network: Optional[str] = None
    node_config: Optional[Dict[str, Any]] = None
    logger_config: Optional[Dict[str, Any]] = None
    zerostate: Optional[Dict[str, Any]] = None

    def get_cached(self, kind: ConfigKind) -> Optional[Dict[str, Any]]:
        return getattr(self, kind.state_key)

    def set_cached(self, kind: ConfigKind, value: Optional[Dict[str, Any]]) -> None:
        setattr(self, kind.state_key, value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "node_config": self.node_config,
            "logger_config": self.logger_config,
            "zerostate": self.zerostate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        return cls(
            network=data.get("network"),
            node_config=data.get("node_config"),
            logger_config=data.get("logger_config"),
            zerostate=data.get("zerostate"),
        )


@dataclass
class StateFileData:
    """Everything persisted in the state file."""
    last_commit_info: Optional[CommitInfo] = None
    reset_frozen: Dict[str, ResetFreeze] = field(default_factory=dict)
    reset_type: ResetType = ResetType.FULL
    current_workspace: Optional[str] = None
    workspaces: Dict[str, Workspace] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_commit_info": (
                self.last_commit_info.to_dict() if self.last_commit_info else None
            ),
            "reset_frozen": {k: v.to_dict() for k, v in self.reset_frozen.items()},
            "reset_type": self.reset_type.value,
            "current_workspace": self.current_workspace,
            "workspaces": {k: v.to_dict() for k, v in self.workspaces.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateFileData":
        """Build state from an already-migrated dictionary, defaulting missing fields."""
        commit = data.get("last_commit_info")
        frozen = data.get("reset_frozen") or {}
        workspaces = data.get("workspaces") or {}
        try:
            reset_type = ResetType.parse(str(data.get("reset_type") or "full"))
        except ValueError:
            reset_type = ResetType.FULL

        return cls(
            last_commit_info=CommitInfo.from_dict(commit) if isinstance(commit, dict) else None,
            reset_frozen={
                str(k): ResetFreeze.from_dict(v, str(k))
                for k, v in frozen.items()
                if isinstance(v, dict)
            },
            reset_type=reset_type,
            current_workspace=data.get("current_workspace"),
            workspaces={
                str(k): Workspace.from_dict(v)
                for k, v in workspaces.items()
                if isinstance(v, dict)
            },
        )


# -----------------------------------------------------------------------------
# RESET PARAMETERS & RESULTS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ResetParams:
    """
    Parsed reset request.

    `reset_type` and `network` stay None when the request does not name
    them; the orchestrator then falls back to the persisted defaults.
    """
    commit: str = DEFAULT_COMMIT
    node_count: int = DEFAULT_NODE_COUNT
    build_profile: str = DEFAULT_BUILD_PROFILE
    reset_type: Optional[ResetType] = None
    network: Optional[str] = None
    repo: Optional[str] = None


@dataclass(frozen=True)
class ProcessResult:
    """Captured result of an external command."""
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        # ansible reports task failures on stdout
        return self.stdout or self.stderr


@dataclass(frozen=True)
class ResetResult:
    """
    Terminal result of one reset workflow invocation.

    Attributes:
        outcome: Terminal state reached.
        network: Target network.
        stage: Stage that failed, for FAILED outcomes.
        output: Captured output of the failed stage.
        freeze: Active freeze, for ALREADY_FROZEN outcomes.
        commit_info: Resolved commit, once known.
        elapsed: Seconds spent in the workflow.
    """
    outcome: ResetOutcome
    network: str
    stage: Optional[ResetStage] = None
    output: str = ""
    freeze: Optional[ResetFreeze] = None
    commit_info: Optional[CommitInfo] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome is ResetOutcome.DONE


@dataclass(frozen=True)
class FreezeResult:
    """Result of a freeze request. `created` is False when an existing freeze was returned."""
    freeze: ResetFreeze
    created: bool


@dataclass(frozen=True)
class WorkspaceChange:
    """Result of set_workspace: per-kind source report."""
    name: str
    created: bool
    sources: Dict[ConfigKind, SourceStatus]
    copied_from: Optional[str] = None


@dataclass(frozen=True)
class SelectionView:
    """Sorted list of names with the current selection marked."""
    items: List[str]
    current: str


@dataclass(frozen=True)
class ResetProgress:
    """
    One observable step of a reset workflow.

    Attributes:
        network: Target network.
        stage: Stage being entered, or the stage that failed.
        elapsed: Seconds since the workflow started.
        commit_ref: Ref requested by the operator.
        commit_info: Resolved commit, once known.
        error: Captured output of a failed stage.
        failed: True when `stage` failed.
    """
    network: str
    stage: ResetStage
    elapsed: float = 0.0
    commit_ref: str = DEFAULT_COMMIT
    commit_info: Optional[CommitInfo] = None
    error: Optional[str] = None
    failed: bool = False


# -----------------------------------------------------------------------------
# REPLIES
# -----------------------------------------------------------------------------

class ReplyKind(Enum):
    ACCESS_DENIED = "access_denied"
    RESET_FROZEN = "reset_frozen"
    RESET_ALREADY_RUNNING = "reset_already_running"
    RESET_PROGRESS = "reset_progress"
    FREEZE = "freeze"
    UNFREEZE = "unfreeze"
    TIMINGS = "timings"
    CONFIG_PARAM = "config_param"
    ACCOUNT = "account"
    COMMIT = "commit"
    CONFIG_VALUE = "config_value"
    CONFIG_UPDATED = "config_updated"
    WORKSPACE_CHANGED = "workspace_changed"
    WORKSPACE_DELETED = "workspace_deleted"
    WORKSPACES = "workspaces"
    NETWORKS = "networks"
    NETWORK_CHANGED = "network_changed"
    RESET_TYPE = "reset_type"
    ERROR = "error"


@dataclass(frozen=True)
class Reply:
    """
    Structured answer to an operator request, rendered by the interface layer.

    `data` depends on `kind`: a ResetFreeze for RESET_FROZEN, a
    ResetProgress for RESET_PROGRESS, a diff string for CONFIG_UPDATED and
    so on. `config_kind` is set for the config replies.
    """
    kind: ReplyKind
    data: Any = None
    config_kind: Optional[ConfigKind] = None
