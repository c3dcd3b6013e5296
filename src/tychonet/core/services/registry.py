from __future__ import annotations

"""
Workspace & Network Registry.

Maps network names to their inventory and RPC endpoint, and manages named
workspaces: overlays of the node/logger/zero-state documents plus a
selected network. Methods operate on a StateFileData that the caller has
obtained from the StateStore, so the caller controls locking and
persistence.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from tychonet.core.config.document import ConfigDocument
from tychonet.domain.constants import DEFAULT_WORKSPACE
from tychonet.domain.errors import (
    ConfigurationError,
    DefaultWorkspaceError,
    NetworkNotFoundError,
    WorkspaceNotFoundError,
)
from tychonet.domain.models import (
    ConfigKind,
    SelectionView,
    SourceStatus,
    StateFileData,
    Workspace,
    WorkspaceChange,
)
from tychonet.domain.ports import StatusClient
from tychonet.domain.settings import Settings

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# NETWORK DESCRIPTOR
# -----------------------------------------------------------------------------

@dataclass
class NetworkDescriptor:
    """
    One resettable network.

    The reset lock is the per-network exclusivity flag: a non-blocking
    acquire is the atomic test-and-set.
    """
    name: str
    rpc_client: StatusClient
    inventory_file: str
    _reset_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def reset_running(self) -> bool:
        return self._reset_lock.locked()

    def try_begin_reset(self) -> bool:
        return self._reset_lock.acquire(blocking=False)

    def end_reset(self) -> None:
        self._reset_lock.release()


# -----------------------------------------------------------------------------
# REGISTRY
# -----------------------------------------------------------------------------

class Registry:
    """Registered networks, config file locations and workspace operations."""

    def __init__(
            self,
            networks: Dict[str, NetworkDescriptor],
            default_network: str,
            config_files: Dict[ConfigKind, str],
    ) -> None:
        if default_network not in networks:
            raise ConfigurationError(
                f"default network '{default_network}' is not a registered network"
            )
        self._networks = networks
        self._default_network = default_network
        self._config_files = config_files

    @classmethod
    def from_settings(
            cls,
            settings: Settings,
            rpc_factory: Callable[[str], StatusClient],
    ) -> "Registry":
        """
        Build the registry from settings.

        Raises:
            ConfigurationError: A network lacks an inventory or an RPC
                endpoint, or the default network is unknown.
        """
        names = set(settings.rpc_urls) | set(settings.inventory_files)
        networks: Dict[str, NetworkDescriptor] = {}

        for name in sorted(names):
            if name not in settings.inventory_files:
                raise ConfigurationError(f"inventory file not found for network '{name}'")
            if name not in settings.rpc_urls:
                raise ConfigurationError(f"rpc url not found for network '{name}'")
            try:
                client = rpc_factory(settings.rpc_urls[name])
            except ValueError as e:
                raise ConfigurationError(f"network '{name}': {e}") from e
            networks[name] = NetworkDescriptor(
                name=name,
                rpc_client=client,
                inventory_file=settings.inventory_files[name],
            )

        config_files = {
            ConfigKind.NODE: settings.node_config_file,
            ConfigKind.LOGGER: settings.logger_config_file,
            ConfigKind.ZEROSTATE: settings.zerostate_file,
        }
        logger.info(f"Registered networks: {', '.join(networks) or '-'}")
        return cls(networks, settings.default_network, config_files)

    # -------------------------------------------------------------------------
    # Networks
    # -------------------------------------------------------------------------

    @property
    def default_network(self) -> str:
        return self._default_network

    @property
    def network_names(self) -> List[str]:
        return sorted(self._networks)

    def network(self, name: str) -> NetworkDescriptor:
        try:
            return self._networks[name]
        except KeyError:
            raise NetworkNotFoundError(name) from None

    def config_path(self, kind: ConfigKind) -> str:
        path = self._config_files.get(kind, "")
        if not path:
            raise ConfigurationError(f"{kind.title} file is not configured")
        return path

    def current_network(self, state: StateFileData) -> str:
        """The current workspace's network, or the process-wide default."""
        ws = state.workspaces.get(self.current_workspace(state))
        if ws is not None and ws.network:
            if ws.network in self._networks:
                return ws.network
            logger.warning(
                f"Workspace network '{ws.network}' is no longer registered. "
                f"Using default '{self._default_network}'."
            )
        return self._default_network

    def set_network(self, state: StateFileData, network: str) -> None:
        """
        Select a network for the current workspace.

        Raises:
            NetworkNotFoundError: The network is not registered.
        """
        if network not in self._networks:
            raise NetworkNotFoundError(network)
        name = self.current_workspace(state)
        state.workspaces.setdefault(name, Workspace()).network = network
        logger.info(f"Workspace '{name}' now targets network '{network}'")

    def get_network(self, state: StateFileData) -> SelectionView:
        return SelectionView(items=self.network_names, current=self.current_network(state))

    # -------------------------------------------------------------------------
    # Workspaces
    # -------------------------------------------------------------------------

    @staticmethod
    def current_workspace(state: StateFileData) -> str:
        return state.current_workspace or DEFAULT_WORKSPACE

    @staticmethod
    def workspace_exists(state: StateFileData, name: str) -> bool:
        return name == DEFAULT_WORKSPACE or name in state.workspaces

    def get_workspace(self, state: StateFileData) -> SelectionView:
        current = self.current_workspace(state)
        names = set(state.workspaces) | {current, DEFAULT_WORKSPACE}
        return SelectionView(items=sorted(names), current=current)

    def set_workspace(
            self,
            state: StateFileData,
            name: str,
            copy_from: Optional[str] = None,
    ) -> WorkspaceChange:
        """
        Switch to a workspace, creating and populating it if needed.

        A new workspace is populated from `copy_from`, or from the default
        workspace when no source is given. An existing workspace is only
        repopulated when `copy_from` is given. Source documents that are
        not cached yet are loaded from their files and cached on the
        source as well.

        Raises:
            WorkspaceNotFoundError: The source workspace does not exist.
            PersistenceError: A source document could not be loaded. The
                state is left unchanged in that case.
        """
        exists = self.workspace_exists(state, name)
        source = copy_from
        if source is None and not exists:
            source = DEFAULT_WORKSPACE

        if source is not None and not self.workspace_exists(state, source):
            raise WorkspaceNotFoundError(source)

        sources = {kind: SourceStatus.UNCHANGED for kind in ConfigKind}
        if source is None or source == name:
            state.current_workspace = name
            return WorkspaceChange(name=name, created=False, sources=sources)

        # Load everything first so a failing file leaves the state untouched.
        source_ws = state.workspaces.get(source)
        loaded: Dict[ConfigKind, object] = {}
        for kind in ConfigKind:
            cached = source_ws.get_cached(kind) if source_ws else None
            if cached is None:
                loaded[kind] = ConfigDocument.from_file(self.config_path(kind)).as_object()
                sources[kind] = SourceStatus.FROM_FILE
            else:
                loaded[kind] = cached
                sources[kind] = SourceStatus.COPIED

        source_ws = state.workspaces.setdefault(source, Workspace())
        target = state.workspaces.setdefault(name, Workspace(network=source_ws.network))
        for kind, value in loaded.items():
            if sources[kind] is SourceStatus.FROM_FILE:
                source_ws.set_cached(kind, value)
            target.set_cached(kind, copy.deepcopy(value))

        state.current_workspace = name
        logger.info(
            f"Workspace '{name}' populated from '{source}': "
            + ", ".join(f"{k.value}={s.value}" for k, s in sources.items())
        )
        return WorkspaceChange(
            name=name, created=not exists, sources=sources, copied_from=source
        )

    def delete_workspace(self, state: StateFileData, name: str) -> None:
        """
        Remove a workspace.

        Raises:
            DefaultWorkspaceError: Attempt to delete the default workspace.
            WorkspaceNotFoundError: No such workspace.
        """
        if name == DEFAULT_WORKSPACE:
            raise DefaultWorkspaceError(name)
        if name not in state.workspaces:
            raise WorkspaceNotFoundError(name)

        del state.workspaces[name]
        if state.current_workspace == name:
            state.current_workspace = None
        logger.info(f"Workspace '{name}' deleted")
