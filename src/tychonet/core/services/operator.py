from __future__ import annotations

"""
Operator Facade.

Single entry point for the interface layers. Every operator command maps
to one method returning a Reply; privileged commands check the caller's
origin first and answer ACCESS_DENIED instead of acting.
"""

import logging
from concurrent.futures import Future
from typing import Callable, Optional, Union

from tychonet.core.parsing.params import (
    parse_account_address,
    parse_freeze_expression,
    parse_reset_params,
    parse_workspace_expression,
)
from tychonet.core.services.config_service import ConfigService
from tychonet.core.services.orchestrator import ResetOrchestrator
from tychonet.core.services.registry import Registry
from tychonet.core.services.runner import SubprocessRunner
from tychonet.core.services.state_store import StateStore
from tychonet.domain.errors import ParamsError
from tychonet.domain.models import (
    ConfigKind,
    Origin,
    Reply,
    ReplyKind,
    ResetResult,
    ResetType,
)
from tychonet.domain.ports import CommitResolver, Notifier, ProcessRunner, StatusClient
from tychonet.domain.settings import Settings
from tychonet.infra.network import GithubClient, JrpcClient

logger = logging.getLogger(__name__)

_DENIED = Reply(ReplyKind.ACCESS_DENIED)


class Operator:
    """Wires the registry, state store, config service and orchestrator together."""

    def __init__(
            self,
            store: StateStore,
            registry: Registry,
            config: ConfigService,
            orchestrator: ResetOrchestrator,
    ) -> None:
        self.store = store
        self.registry = registry
        self.config = config
        self.orchestrator = orchestrator

    @classmethod
    def from_settings(
            cls,
            settings: Settings,
            notifier: Notifier,
            runner: Optional[ProcessRunner] = None,
            resolver: Optional[CommitResolver] = None,
            rpc_factory: Callable[[str], StatusClient] = JrpcClient,
            **orchestrator_kwargs,
    ) -> "Operator":
        """
        Build the full service graph from settings.

        Raises:
            ConfigurationError: Inconsistent network settings.
            PersistenceError: Unreadable state file.
        """
        registry = Registry.from_settings(settings, rpc_factory)
        store = StateStore.load(settings.state_file, registry.default_network)
        if resolver is None:
            resolver = GithubClient(settings.github_token, settings.github_repo)
        orchestrator = ResetOrchestrator(
            settings,
            store,
            registry,
            resolver,
            runner or SubprocessRunner(),
            notifier,
            **orchestrator_kwargs,
        )
        return cls(store, registry, ConfigService(store, registry), orchestrator)

    def start(self, record_commit: bool = True) -> None:
        self.orchestrator.start(record_commit=record_commit)

    def shutdown(self, wait: bool = True) -> None:
        self.orchestrator.shutdown(wait=wait)

    # -------------------------------------------------------------------------
    # Network status
    # -------------------------------------------------------------------------

    def status(self, network: Optional[str] = None) -> Reply:
        descriptor = self.registry.network(network or self._current_network())
        return Reply(ReplyKind.TIMINGS, descriptor.rpc_client.get_timings())

    def get_param(self, param: int, network: Optional[str] = None) -> Reply:
        descriptor = self.registry.network(network or self._current_network())
        return Reply(ReplyKind.CONFIG_PARAM, descriptor.rpc_client.get_param(param))

    def get_account(self, address: str, network: Optional[str] = None) -> Reply:
        address = parse_account_address(address)
        descriptor = self.registry.network(network or self._current_network())
        state = descriptor.rpc_client.get_account(address)
        return Reply(ReplyKind.ACCOUNT, {"address": address, "state": state})

    def get_commit(self) -> Reply:
        return Reply(ReplyKind.COMMIT, self.orchestrator.get_commit())

    # -------------------------------------------------------------------------
    # Configuration documents
    # -------------------------------------------------------------------------

    def get_config(self, kind: ConfigKind, expr: str) -> Reply:
        return Reply(ReplyKind.CONFIG_VALUE, self.config.get_config(kind, expr), kind)

    def set_config(self, origin: Origin, kind: ConfigKind, expr: str) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        return Reply(ReplyKind.CONFIG_UPDATED, self.config.set_config(kind, expr), kind)

    # -------------------------------------------------------------------------
    # Freeze
    # -------------------------------------------------------------------------

    def freeze(self, origin: Origin, expr: str, network: Optional[str] = None) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        result = self.orchestrator.freeze(origin, parse_freeze_expression(expr), network)
        if not result.created:
            return Reply(ReplyKind.RESET_FROZEN, result.freeze)
        return Reply(ReplyKind.FREEZE, result.freeze)

    def unfreeze(self, origin: Origin, network: Optional[str] = None) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        self.orchestrator.unfreeze(network)
        return Reply(ReplyKind.UNFREEZE, network or self._current_network())

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(
            self,
            origin: Origin,
            expr: str = "",
            wait: bool = True,
    ) -> Union[ResetResult, "Future[ResetResult]"]:
        """
        Parse reset parameters and run (or dispatch) the workflow.

        Progress and outcome are delivered through the notifier in both
        modes; with `wait=False` a Future is returned immediately.
        """
        params = parse_reset_params(expr)
        if wait:
            return self.orchestrator.reset(origin, params)
        return self.orchestrator.submit_reset(origin, params)

    def get_reset_type(self) -> Reply:
        return Reply(ReplyKind.RESET_TYPE, self.orchestrator.get_reset_type())

    def set_reset_type(self, origin: Origin, value: str) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        try:
            reset_type = ResetType.parse(value)
        except ValueError as e:
            raise ParamsError(str(e)) from e
        self.orchestrator.set_reset_type(reset_type)
        return Reply(ReplyKind.RESET_TYPE, reset_type)

    # -------------------------------------------------------------------------
    # Workspaces & networks
    # -------------------------------------------------------------------------

    def get_workspace(self) -> Reply:
        with self.store.locked() as state:
            return Reply(ReplyKind.WORKSPACES, self.registry.get_workspace(state))

    def set_workspace(self, origin: Origin, expr: str) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        name, copy_from = parse_workspace_expression(expr)
        return Reply(ReplyKind.WORKSPACE_CHANGED, self.config.switch_workspace(name, copy_from))

    def delete_workspace(self, origin: Origin, name: str) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        name = name.strip()
        with self.store.mutate() as state:
            self.registry.delete_workspace(state, name)
        return Reply(ReplyKind.WORKSPACE_DELETED, name)

    def get_network(self) -> Reply:
        with self.store.locked() as state:
            return Reply(ReplyKind.NETWORKS, self.registry.get_network(state))

    def set_network(self, origin: Origin, network: str) -> Reply:
        if not self.orchestrator.check_auth(origin):
            return _DENIED
        network = network.strip()
        with self.store.mutate() as state:
            self.registry.set_network(state, network)
        return Reply(ReplyKind.NETWORK_CHANGED, network)

    def _current_network(self) -> str:
        with self.store.locked() as state:
            return self.registry.current_network(state)
