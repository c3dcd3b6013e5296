from __future__ import annotations

"""
Operator parameter mini-languages.

    reset:      [<commit>] (; key=value)*      keys: nodes, profile, type, network, repo
    freeze:     <duration>[:<reason>]
    workspace:  <name>[:<copy_from>]
    account:    <workchain>:<64 hex digits>
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from tychonet.core.parsing.duration import parse_duration
from tychonet.domain.constants import (
    DEFAULT_BUILD_PROFILE,
    DEFAULT_COMMIT,
    DEFAULT_NODE_COUNT,
    MAX_FREEZE_SECONDS,
)
from tychonet.domain.errors import ParamsError
from tychonet.domain.models import ResetParams, ResetType

PARAM_NODE_COUNT = "nodes"
PARAM_BUILD_PROFILE = "profile"
PARAM_RESET_TYPE = "type"
PARAM_NETWORK = "network"
PARAM_REPO = "repo"

_KNOWN_PARAMS = (PARAM_NODE_COUNT, PARAM_BUILD_PROFILE, PARAM_RESET_TYPE, PARAM_NETWORK, PARAM_REPO)

_ADDRESS_RE = re.compile(r"^(-?\d+):([0-9a-fA-F]{64})$")


@dataclass(frozen=True)
class FreezeRequest:
    duration: int
    reason: Optional[str] = None


# -----------------------------------------------------------------------------
# RESET PARAMETERS
# -----------------------------------------------------------------------------

def parse_reset_params(text: str) -> ResetParams:
    """
    Parse reset parameters.

    Examples:
        ``""``                       -> master, 13 nodes, release profile
        ``"feature/new"``            -> commit feature/new
        ``"nodes=10; profile=debug"``

    Raises:
        ParamsError: Unknown keys, duplicate bare tokens or invalid values.
    """
    commit: Optional[str] = None
    values: Dict[str, str] = {}

    for raw in (text or "").split(";"):
        item = raw.strip()
        if not item:
            continue

        key, sep, value = item.partition("=")
        if not sep:
            if commit is not None:
                raise ParamsError(f"invalid param: {item}")
            commit = item
            continue

        key = key.strip()
        if key not in _KNOWN_PARAMS:
            raise ParamsError(f"unknown param: {key}")
        value = value.strip()
        if not value:
            raise ParamsError(f"empty value for param: {key}")
        values[key] = value

    # Values are joined into a space-separated ansible --extra-vars string.
    _reject_whitespace("commit", commit)
    _reject_whitespace(PARAM_BUILD_PROFILE, values.get(PARAM_BUILD_PROFILE))
    _reject_whitespace(PARAM_REPO, values.get(PARAM_REPO))

    node_count = DEFAULT_NODE_COUNT
    if PARAM_NODE_COUNT in values:
        node_count = _parse_positive_int(PARAM_NODE_COUNT, values[PARAM_NODE_COUNT])

    reset_type: Optional[ResetType] = None
    if PARAM_RESET_TYPE in values:
        try:
            reset_type = ResetType.parse(values[PARAM_RESET_TYPE])
        except ValueError as e:
            raise ParamsError(str(e)) from e

    return ResetParams(
        commit=commit or DEFAULT_COMMIT,
        node_count=node_count,
        build_profile=values.get(PARAM_BUILD_PROFILE, DEFAULT_BUILD_PROFILE),
        reset_type=reset_type,
        network=values.get(PARAM_NETWORK),
        repo=values.get(PARAM_REPO),
    )


def _reject_whitespace(key: str, value: Optional[str]) -> None:
    if value is not None and any(ch.isspace() for ch in value):
        raise ParamsError(f"{key} must not contain whitespace: {value!r}")


def _parse_positive_int(key: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise ParamsError(f"invalid integer for {key}: {value!r}") from None
    if number <= 0:
        raise ParamsError(f"{key} must be positive, got {number}")
    return number


# -----------------------------------------------------------------------------
# FREEZE & WORKSPACE EXPRESSIONS
# -----------------------------------------------------------------------------

def parse_freeze_expression(text: str) -> FreezeRequest:
    """
    Parse `<duration>` or `<duration>:<reason>`.

    Raises:
        ParamsError: Invalid duration, zero duration or more than 24 hours.
    """
    duration_text, sep, reason = (text or "").partition(":")
    duration = parse_duration(duration_text)

    if duration <= 0:
        raise ParamsError("freeze duration must be positive")
    if duration > MAX_FREEZE_SECONDS:
        raise ParamsError("Cannot freeze for more than 24 hours")

    reason = reason.strip() if sep else ""
    return FreezeRequest(duration=duration, reason=reason or None)


def parse_workspace_expression(text: str) -> Tuple[str, Optional[str]]:
    """
    Parse `<name>` or `<name>:<copy_from>`.

    Raises:
        ParamsError: Empty workspace or source name.
    """
    name, sep, source = (text or "").partition(":")
    name = name.strip()
    if not name:
        raise ParamsError("workspace name is empty")
    if not sep:
        return name, None

    source = source.strip()
    if not source:
        raise ParamsError("source workspace name is empty")
    return name, source


# -----------------------------------------------------------------------------
# ACCOUNT ADDRESS
# -----------------------------------------------------------------------------

def parse_account_address(text: str) -> str:
    """
    Normalize a `<workchain>:<hex>` address to lowercase hex.

    Raises:
        ParamsError: Anything but a workchain id and a 256-bit hex account id.
    """
    match = _ADDRESS_RE.match((text or "").strip())
    if match is None:
        raise ParamsError(f"invalid address: {text!r}")
    return f"{int(match.group(1))}:{match.group(2).lower()}"
