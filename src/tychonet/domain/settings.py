from __future__ import annotations

"""
Settings Domain.

Loads the operator settings from a JSON file and `TYCHONET_*` environment
overrides, then validates and normalizes them into an immutable Settings
object. Type problems are coerced with a warning where possible; anything
that would make the service unusable raises ConfigurationError.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tychonet.domain.constants import DEFAULT_GITHUB_REPO, ENV_PREFIX
from tychonet.domain.errors import ConfigurationError
from tychonet.infra.fs import (
    DEFAULT_SETTINGS_FILENAME,
    DEFAULT_STATE_FILENAME,
    get_user_data_dir,
    normalize_path,
)

logger = logging.getLogger(__name__)

SETTINGS_FILE = os.path.join(get_user_data_dir(), DEFAULT_SETTINGS_FILENAME)


# -----------------------------------------------------------------------------
# MODEL
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    """
    Validated runtime settings.

    Attributes:
        rpc_urls: Network name -> JSON-RPC endpoint.
        inventory_files: Network name -> ansible inventory path.
        default_network: Network used when a workspace selects none.
        ansible_config_file: Value exported as ANSIBLE_CONFIG for playbooks.
        node_config_file: Node config document.
        logger_config_file: Logger config document.
        zerostate_file: Zero-state (genesis) document.
        reset_playbook: Playbook run in the reset stage.
        setup_playbook: Playbook run in the setup stage.
        github_token: Token for commit lookups.
        github_repo: `owner/name` of the deployed repository.
        allowed_groups: Chat ids allowed to run privileged operations.
        authentication_enabled: Whether the allow-list is enforced.
        state_file: Persistent state file location.
        log_level: Root logger level.
        log_file: Optional rotating log file.
    """
    rpc_urls: Dict[str, str]
    inventory_files: Dict[str, str]
    default_network: str
    ansible_config_file: str = ""
    node_config_file: str = ""
    logger_config_file: str = ""
    zerostate_file: str = ""
    reset_playbook: str = ""
    setup_playbook: str = ""
    github_token: str = ""
    github_repo: str = DEFAULT_GITHUB_REPO
    allowed_groups: List[int] = field(default_factory=list)
    authentication_enabled: bool = True
    state_file: str = ""
    log_level: str = "INFO"
    log_file: Optional[str] = None


_STRING_FIELDS = (
    "default_network", "ansible_config_file", "node_config_file",
    "logger_config_file", "zerostate_file", "reset_playbook", "setup_playbook",
    "github_token", "github_repo", "state_file", "log_level",
)
_PATH_FIELDS = (
    "ansible_config_file", "node_config_file", "logger_config_file",
    "zerostate_file", "reset_playbook", "setup_playbook", "state_file",
)
_MAP_FIELDS = ("rpc_urls", "inventory_files")


def get_default_settings() -> Dict[str, Any]:
    return {
        "rpc_urls": {},
        "inventory_files": {},
        "default_network": "",
        "ansible_config_file": "",
        "node_config_file": "",
        "logger_config_file": "",
        "zerostate_file": "",
        "reset_playbook": "",
        "setup_playbook": "",
        "github_token": "",
        "github_repo": DEFAULT_GITHUB_REPO,
        "allowed_groups": [],
        "authentication_enabled": True,
        "state_file": os.path.join(get_user_data_dir(), DEFAULT_STATE_FILENAME),
        "log_level": "INFO",
        "log_file": None,
    }


# -----------------------------------------------------------------------------
# LOADING
# -----------------------------------------------------------------------------

def load_settings(
        path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
) -> Tuple[Settings, List[str]]:
    """
    Load settings from a JSON file and environment overrides.

    Args:
        path: Settings file; defaults to the user data directory. A missing
            file is allowed when the environment provides everything.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        Tuple[Settings, List[str]]: Validated settings and coercion warnings.

    Raises:
        ConfigurationError: Unreadable file or invalid mandatory fields.
    """
    env = os.environ if environ is None else environ
    settings_path = path or env.get(f"{ENV_PREFIX}_SETTINGS_FILE") or SETTINGS_FILE

    raw: Dict[str, Any] = {}
    if os.path.exists(settings_path):
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"failed to load settings file {settings_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"settings file {settings_path} must contain an object")
        logger.debug(f"Settings loaded from {settings_path}")
    elif path:
        raise ConfigurationError(f"settings file not found: {settings_path}")

    raw.update(_env_overrides(env))
    return validate_settings(raw)


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    """Collect `TYCHONET_<FIELD>` variables for every known field."""
    overrides: Dict[str, Any] = {}
    for name in get_default_settings():
        key = f"{ENV_PREFIX}_{name.upper()}"
        if key not in env:
            continue
        value = env[key]
        if name in _MAP_FIELDS:
            overrides[name] = parse_named_list(value, key)
        elif name == "allowed_groups":
            overrides[name] = parse_list(value)
        else:
            overrides[name] = value
    return overrides


def parse_list(value: str) -> List[str]:
    """Parse `a, b` or `[a, b]` into stripped items."""
    body = value.strip().strip("[]")
    return [item.strip() for item in body.split(",") if item.strip()]


def parse_named_list(value: str, source: str = "value") -> Dict[str, str]:
    """Parse `name=value, name=value` (optionally bracketed) into a dict."""
    result: Dict[str, str] = {}
    for item in parse_list(value):
        name, sep, item_value = item.partition("=")
        if not sep:
            raise ConfigurationError(f"{source}: expected a `name=value`, got {item!r}")
        name = name.strip()
        if not name:
            raise ConfigurationError(f"{source}: name is empty in {item!r}")
        result[name] = item_value.strip()
    return result


# -----------------------------------------------------------------------------
# VALIDATION
# -----------------------------------------------------------------------------

def validate_settings(config: Any) -> Tuple[Settings, List[str]]:
    """
    Validate and normalize a raw settings dictionary.

    Raises:
        ConfigurationError: On non-dict input, an empty network map or a
            missing default network name.
    """
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"invalid settings type: expected dict, received {type(config).__name__}"
        )

    warnings: List[str] = []
    defaults = get_default_settings()
    merged: Dict[str, Any] = dict(defaults)
    merged.update({k: v for k, v in config.items() if k in defaults})

    unknown = sorted(set(config) - set(defaults) - {"version"})
    for key in unknown:
        warnings.append(f"Unknown settings field '{key}' ignored.")

    for name in _STRING_FIELDS:
        merged[name] = _as_str(merged.get(name), defaults[name], name, warnings)
    for name in _PATH_FIELDS:
        if merged[name]:
            merged[name] = normalize_path(merged[name], merged[name])
    for name in _MAP_FIELDS:
        merged[name] = _as_str_map(merged.get(name), name)

    merged["allowed_groups"] = _as_int_list(merged.get("allowed_groups"), warnings)
    merged["authentication_enabled"] = _as_bool(
        merged.get("authentication_enabled"), True, "authentication_enabled", warnings
    )
    if merged.get("log_file"):
        merged["log_file"] = normalize_path(str(merged["log_file"]), "")
    else:
        merged["log_file"] = None

    if not merged["rpc_urls"] and not merged["inventory_files"]:
        raise ConfigurationError("no networks configured (rpc_urls / inventory_files are empty)")
    if not merged["default_network"]:
        raise ConfigurationError("default_network is not set")

    for w in warnings:
        logger.warning(f"Settings: {w}")

    return Settings(**merged), warnings


def _as_str(value: Any, fallback: str, name: str, warnings: List[str]) -> str:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        warnings.append(f"Field '{name}' converted from number to string.")
        return str(value)
    raise ConfigurationError(
        f"invalid field '{name}': expected str, received {type(value).__name__}"
    )


def _as_str_map(value: Any, name: str) -> Dict[str, str]:
    if value is None:
        return {}
    if isinstance(value, str):
        return parse_named_list(value, name)
    if isinstance(value, dict):
        return {str(k).strip(): str(v).strip() for k, v in value.items() if str(k).strip()}
    raise ConfigurationError(
        f"invalid field '{name}': expected object, received {type(value).__name__}"
    )


def _as_int_list(value: Any, warnings: List[str]) -> List[int]:
    if value is None:
        return []
    items = parse_list(value) if isinstance(value, str) else value
    if not isinstance(items, list):
        raise ConfigurationError("invalid field 'allowed_groups': expected a list")

    out: List[int] = []
    for item in items:
        try:
            out.append(int(item))
        except (TypeError, ValueError):
            warnings.append(f"Invalid chat id {item!r} in 'allowed_groups' discarded.")
    return out


def _as_bool(value: Any, fallback: bool, name: str, warnings: List[str]) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback
    if isinstance(value, str):
        s = value.strip().lower()
        if s in ("true", "1", "yes", "y", "on"):
            return True
        if s in ("false", "0", "no", "n", "off"):
            return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)

    warnings.append(f"Invalid field '{name}': expected bool. Using {fallback}.")
    return fallback
