from __future__ import annotations

"""
Persistent State Store.

Owns the single state file holding the last deployed commit, active
freezes, the default reset type, the current workspace and all workspace
overlays. All access goes through one re-entrant lock; mutations are
written through to disk before the lock is released.
"""

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from typing import Iterator

from tychonet.domain.constants import CURRENT_STATE_VERSION
from tychonet.domain.errors import PersistenceError
from tychonet.domain.migrations import run_migrations
from tychonet.domain.models import StateFileData
from tychonet.infra.fs import atomic_write_text, read_text

logger = logging.getLogger(__name__)


class StateStore:
    """
    Lock-guarded, write-through owner of StateFileData.

    Use `locked()` for reads and `mutate()` for changes that must survive
    a restart. Both are re-entrant within a thread.
    """

    def __init__(self, path: str, data: StateFileData) -> None:
        self._path = path
        self._data = data
        self._lock = threading.RLock()

    @classmethod
    def load(cls, path: str, default_network: str) -> "StateStore":
        """
        Load the state file, or start from an empty state if it is absent.

        Args:
            path: State file location.
            default_network: Network that legacy global freezes migrate to.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed.
        """
        if not os.path.exists(path):
            logger.info(f"State file not found at {path}. Starting with empty state.")
            return cls(path, StateFileData())

        text = read_text(path)
        try:
            raw = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise PersistenceError(f"failed to parse state file ({e})", path) from e

        if not isinstance(raw, dict):
            raise PersistenceError("state file root must be an object", path)

        try:
            data = StateFileData.from_dict(run_migrations(raw, default_network))
        except (TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(f"malformed state file ({e})", path) from e
        logger.debug(
            f"State loaded from {path}: {len(data.workspaces)} workspace(s), "
            f"{len(data.reset_frozen)} freeze(s)"
        )
        return cls(path, data)

    @property
    def path(self) -> str:
        return self._path

    @contextmanager
    def locked(self) -> Iterator[StateFileData]:
        """Hold the lock and expose the live state without saving."""
        with self._lock:
            yield self._data

    @contextmanager
    def mutate(self) -> Iterator[StateFileData]:
        """
        Hold the lock, expose the live state and save it on normal exit.

        If the block raises, nothing is written. If the write fails the
        in-memory changes are kept and PersistenceError propagates.
        """
        with self._lock:
            yield self._data
            self._save_locked()

    def save(self) -> None:
        with self._lock:
            self._save_locked()

    def snapshot(self) -> StateFileData:
        """Detached deep copy of the current state."""
        with self._lock:
            return copy.deepcopy(self._data)

    def _save_locked(self) -> None:
        payload = self._data.to_dict()
        payload["version"] = CURRENT_STATE_VERSION
        try:
            atomic_write_text(self._path, json.dumps(payload, ensure_ascii=False, indent=2))
        except PersistenceError as e:
            logger.error(f"Failed to save state file: {e}")
            raise
        logger.debug(f"State saved to {self._path}")
