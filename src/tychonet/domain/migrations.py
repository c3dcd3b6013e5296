from __future__ import annotations

import logging
from typing import Any, Dict

from tychonet.domain.constants import CURRENT_STATE_VERSION

logger = logging.getLogger(__name__)


def run_migrations(data: Dict[str, Any], default_network: str) -> Dict[str, Any]:
    """
    Upgrade a raw state-file dictionary to the current schema.

    Older revisions stored a single global freeze and no workspaces. Missing
    fields are left out here and defaulted by StateFileData.from_dict.

    Args:
        data: The raw dictionary loaded from the state file.
        default_network: Network that pre-existing global freezes apply to.

    Returns:
        Dict[str, Any]: The migrated dictionary (modified in place).
    """
    # 1. Single freeze object (or null) -> per-network map
    frozen = data.get("reset_frozen")
    if frozen is None:
        data["reset_frozen"] = {}
    elif isinstance(frozen, dict) and "timestamp_until" in frozen:
        logger.info(
            f"Migrations: Moving global reset freeze under network '{default_network}'"
        )
        frozen.setdefault("network", default_network)
        data["reset_frozen"] = {default_network: frozen}

    # 2. Enum spelling of early revisions ("Full" / "Restart")
    reset_type = data.get("reset_type")
    if isinstance(reset_type, str) and reset_type != reset_type.lower():
        logger.info(f"Migrations: reset_type {reset_type!r} -> {reset_type.lower()!r}")
        data["reset_type"] = reset_type.lower()

    # 3. Workspaces persisted as null
    if data.get("workspaces") is None:
        data["workspaces"] = {}

    data["version"] = CURRENT_STATE_VERSION
    return data
