from __future__ import annotations

"""
Workspace-aware configuration access.

Reads come from the current workspace's cached document when present,
otherwise from the file on disk. Writes go to the file, refresh the
workspace cache and persist the state in one critical section.
"""

import logging
from typing import Dict, Optional

from tychonet.core.config.document import ConfigDocument, dump_json
from tychonet.core.config.expression import apply_edit, parse_edit_expression
from tychonet.core.config.path_expr import parse_path
from tychonet.core.services.registry import Registry
from tychonet.core.services.state_store import StateStore
from tychonet.domain.models import ConfigKind, StateFileData, WorkspaceChange

logger = logging.getLogger(__name__)


class ConfigService:
    """Path-addressed get/set over the node, logger and zero-state documents."""

    def __init__(self, store: StateStore, registry: Registry) -> None:
        self._store = store
        self._registry = registry

    def get_config(self, kind: ConfigKind, expr: str) -> str:
        """
        Return the pretty-printed JSON value at a path.

        Raises:
            PathSyntaxError: Malformed path.
            NotFoundError / TypeMismatchError: The path does not resolve.
            PersistenceError: The backing file cannot be read.
        """
        path = parse_path(expr)
        with self._store.locked() as state:
            document = self._open(state, kind)
            return dump_json(document.get(path))

    def set_config(self, kind: ConfigKind, expr: str) -> str:
        """
        Apply an edit expression and return the rendered diff.

        The file is written first; the workspace cache and the state file
        are only updated once the file write succeeded.
        """
        edit = parse_edit_expression(expr)
        with self._store.mutate() as state:
            document = self._open(state, kind)
            apply_edit(document, edit)
            diff = document.save()

            workspace = self._registry.current_workspace(state)
            cached = state.workspaces.get(workspace)
            if cached is not None:
                cached.set_cached(kind, document.as_object())

        logger.info(f"{kind.title} updated in workspace '{workspace}'")
        return diff

    def switch_workspace(self, name: str, copy_from: Optional[str] = None) -> WorkspaceChange:
        """Select (and populate) a workspace, then write its documents to disk."""
        with self._store.mutate() as state:
            change = self._registry.set_workspace(state, name, copy_from)
            self.materialize(state)
        return change

    def materialize(self, state: StateFileData) -> Dict[ConfigKind, bool]:
        """
        Write the current workspace's cached documents onto the config files.

        Kinds without a cached document are left as they are on disk.

        Returns:
            Dict[ConfigKind, bool]: Which kinds were written.
        """
        written: Dict[ConfigKind, bool] = {}
        ws = state.workspaces.get(self._registry.current_workspace(state))
        for kind in ConfigKind:
            cached = ws.get_cached(kind) if ws else None
            if cached is None:
                written[kind] = False
                continue
            ConfigDocument.from_object(self._registry.config_path(kind), cached).save()
            written[kind] = True
        return written

    def _open(self, state: StateFileData, kind: ConfigKind) -> ConfigDocument:
        path = self._registry.config_path(kind)
        ws = state.workspaces.get(self._registry.current_workspace(state))
        cached = ws.get_cached(kind) if ws else None
        if cached is not None:
            return ConfigDocument.from_object(path, cached)
        return ConfigDocument.from_file(path)
