from __future__ import annotations

"""
Reset Orchestrator.

Drives the per-network reset workflow:

    CheckingAuth -> CheckingFreeze -> AcquiringExclusivity -> ResolvingCommit
        -> RunningReset -> RunningSetup -> Committing -> Done

with Denied, AlreadyFrozen, AlreadyRunning and Failed(stage) as terminal
non-success outcomes. Also owns the freeze windows and their expiry timers.

Long-running work (commit lookup, playbooks) never runs under the state
store lock; the lock is only taken to read the freeze entry and to commit
results.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from tychonet.core.parsing.params import FreezeRequest
from tychonet.core.services.freeze import FreezeScheduler
from tychonet.core.services.registry import NetworkDescriptor, Registry
from tychonet.core.services.state_store import StateStore
from tychonet.domain.constants import (
    ANSIBLE_CONFIG_ENV,
    ANSIBLE_PLAYBOOK_BIN,
    DEFAULT_BRANCH,
    ERROR_ARTIFACT_NAME,
    INLINE_OUTPUT_LIMIT,
)
from tychonet.domain.errors import PersistenceError, SourceControlError
from tychonet.domain.models import (
    CommitInfo,
    FreezeResult,
    Origin,
    ProcessResult,
    Reply,
    ReplyKind,
    ResetFreeze,
    ResetOutcome,
    ResetParams,
    ResetProgress,
    ResetResult,
    ResetStage,
    ResetType,
    StateFileData,
)
from tychonet.domain.ports import CommitResolver, Notifier, ProcessRunner
from tychonet.domain.settings import Settings

logger = logging.getLogger(__name__)


class ResetOrchestrator:
    """
    Reset workflow, freeze windows and reset-type defaults.

    Args:
        settings: Playbook locations, ansible config and the allow-list.
        store: Persistent state.
        registry: Registered networks.
        resolver: Source-control commit lookup.
        runner: External process runner for the playbooks.
        notifier: Receives progress and outcome replies.
        clock: Returns the current unix time in seconds.
        timer_factory: `threading.Timer` compatible constructor.
        max_workers: Upper bound of concurrently dispatched resets.
    """

    def __init__(
            self,
            settings: Settings,
            store: StateStore,
            registry: Registry,
            resolver: CommitResolver,
            runner: ProcessRunner,
            notifier: Notifier,
            clock: Callable[[], float] = time.time,
            timer_factory: Callable[..., threading.Timer] = threading.Timer,
            max_workers: int = 4,
    ) -> None:
        self._settings = settings
        self._store = store
        self._registry = registry
        self._resolver = resolver
        self._runner = runner
        self._notifier = notifier
        self._clock = clock
        self._scheduler = FreezeScheduler(self._on_freeze_expired, timer_factory, clock)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ResetWorker"
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, record_commit: bool = True) -> None:
        """
        Restore runtime state after a (re)start.

        Unexpired freezes get their expiry timers re-armed for the remaining
        time; freezes that expired while the process was down are cleared
        and their originators notified. When no deployed commit is recorded
        yet, the head of the default branch is recorded.
        """
        self._rearm_freezes()
        if record_commit:
            self._record_initial_commit()

    def shutdown(self, wait: bool = True) -> None:
        self._scheduler.cancel_all()
        self._executor.shutdown(wait=wait)

    def check_auth(self, origin: Origin) -> bool:
        if not self._settings.authentication_enabled:
            return True
        return origin.chat_id in self._settings.allowed_groups

    @property
    def scheduler(self) -> FreezeScheduler:
        return self._scheduler

    # -------------------------------------------------------------------------
    # Freeze windows
    # -------------------------------------------------------------------------

    def freeze(
            self,
            origin: Origin,
            request: FreezeRequest,
            network: Optional[str] = None,
    ) -> FreezeResult:
        """
        Block resets on a network for `request.duration` seconds.

        An active freeze is returned unchanged; it must be lifted with
        `unfreeze` before a new one can be set.

        Raises:
            NetworkNotFoundError: Unknown explicit network.
            PersistenceError: The state could not be saved. The freeze and
                its timer stay active in memory.
        """
        now = self._clock()
        with self._store.locked() as state:
            target = self._target_network(state, network)
            existing = state.reset_frozen.get(target)
            if existing is not None and existing.timestamp_until > now:
                logger.info(f"Network '{target}' is already frozen")
                return FreezeResult(freeze=existing, created=False)

            freeze = ResetFreeze(
                network=target,
                timestamp_until=int(now) + request.duration,
                reason=request.reason,
                chat_id=origin.chat_id,
                message_id=origin.message_id,
                message_thread_id=origin.thread_id,
            )
            state.reset_frozen[target] = freeze
            self._scheduler.schedule(target, freeze.timestamp_until)
            self._store.save()

        logger.info(f"Network '{target}' frozen for {request.duration}s")
        return FreezeResult(freeze=freeze, created=True)

    def unfreeze(self, network: Optional[str] = None) -> bool:
        """
        Lift the freeze on a network.

        Returns:
            bool: Whether a freeze was active. Unfreezing a network that is
                not frozen is a successful no-op.
        """
        with self._store.locked() as state:
            target = self._target_network(state, network)
            self._scheduler.cancel(target)
            if state.reset_frozen.pop(target, None) is None:
                return False
            self._store.save()

        logger.info(f"Network '{target}' unfrozen")
        return True

    def get_freeze(self, network: Optional[str] = None) -> Optional[ResetFreeze]:
        with self._store.locked() as state:
            target = self._target_network(state, network)
            return state.reset_frozen.get(target)

    def _on_freeze_expired(self, network: str, timestamp_until: int) -> None:
        with self._store.locked() as state:
            freeze = state.reset_frozen.get(network)
            # A newer freeze replaced the one this timer was armed for.
            if freeze is None or freeze.timestamp_until != timestamp_until:
                return
            del state.reset_frozen[network]
            try:
                self._store.save()
            except PersistenceError as e:
                logger.warning(f"Expired freeze on '{network}' cleared in memory only: {e}")

        logger.info(f"Freeze on '{network}' expired")
        self._notifier.notify(freeze.origin, Reply(ReplyKind.UNFREEZE, network))

    def _rearm_freezes(self) -> None:
        now = self._clock()
        expired: List[ResetFreeze] = []
        with self._store.locked() as state:
            for network, freeze in list(state.reset_frozen.items()):
                if freeze.timestamp_until > now:
                    self._scheduler.schedule(network, freeze.timestamp_until)
                else:
                    expired.append(state.reset_frozen.pop(network))
            if expired:
                self._store.save()

        for freeze in expired:
            logger.info(f"Freeze on '{freeze.network}' expired while offline")
            self._notifier.notify(freeze.origin, Reply(ReplyKind.UNFREEZE, freeze.network))

    # -------------------------------------------------------------------------
    # Reset type & commit
    # -------------------------------------------------------------------------

    def get_reset_type(self) -> ResetType:
        with self._store.locked() as state:
            return state.reset_type

    def set_reset_type(self, reset_type: ResetType) -> None:
        with self._store.mutate() as state:
            state.reset_type = reset_type
        logger.info(f"Default reset type set to '{reset_type.value}'")

    def get_commit(self) -> Optional[CommitInfo]:
        with self._store.locked() as state:
            return state.last_commit_info

    def _record_initial_commit(self) -> None:
        if self.get_commit() is not None:
            return
        try:
            info = self._resolver.resolve(DEFAULT_BRANCH)
        except SourceControlError as e:
            logger.warning(f"Could not record the initial commit: {e}")
            return
        with self._store.mutate() as state:
            if state.last_commit_info is None:
                state.last_commit_info = info
        logger.info(f"Recorded initial commit {info.sha}")

    # -------------------------------------------------------------------------
    # Reset workflow
    # -------------------------------------------------------------------------

    def submit_reset(self, origin: Origin, params: ResetParams) -> "Future[ResetResult]":
        """Dispatch a reset to the worker pool. Progress goes to the notifier."""
        return self._executor.submit(self._run_reset_task, origin, params)

    def _run_reset_task(self, origin: Origin, params: ResetParams) -> ResetResult:
        try:
            return self.reset(origin, params)
        except Exception as e:
            logger.critical(f"Reset worker crashed: {e}", exc_info=True)
            self._notifier.notify(origin, Reply(ReplyKind.ERROR, str(e)))
            raise

    def reset(self, origin: Origin, params: ResetParams) -> ResetResult:
        """
        Run the reset workflow synchronously.

        Every transition is reported to the notifier; the returned result
        carries the terminal outcome.

        Raises:
            NetworkNotFoundError: Unknown explicit network of an authorized
                caller.
        """
        started = self._clock()

        # CheckingAuth
        if not self.check_auth(origin):
            logger.warning(f"Reset denied for chat {origin.chat_id}")
            self._notifier.notify(origin, Reply(ReplyKind.ACCESS_DENIED))
            # The requested network is echoed back unvalidated.
            with self._store.locked() as state:
                target = params.network or self._registry.current_network(state)
            return ResetResult(outcome=ResetOutcome.DENIED, network=target)

        # CheckingFreeze
        with self._store.locked() as state:
            target = self._target_network(state, params.network)
            reset_type = params.reset_type or state.reset_type
            freeze = self._active_freeze(state, target)
        descriptor = self._registry.network(target)

        if freeze is not None:
            self._notifier.notify(origin, Reply(ReplyKind.RESET_FROZEN, freeze))
            return ResetResult(
                outcome=ResetOutcome.ALREADY_FROZEN, network=target, freeze=freeze
            )

        # AcquiringExclusivity
        if not descriptor.try_begin_reset():
            logger.info(f"Reset on '{target}' rejected: already running")
            self._notifier.notify(origin, Reply(ReplyKind.RESET_ALREADY_RUNNING, target))
            return ResetResult(outcome=ResetOutcome.ALREADY_RUNNING, network=target)

        try:
            return self._run_exclusive(origin, params, descriptor, reset_type, started)
        finally:
            descriptor.end_reset()

    def _active_freeze(self, state: StateFileData, network: str) -> Optional[ResetFreeze]:
        """Return the unexpired freeze on a network, clearing an expired one."""
        freeze = state.reset_frozen.get(network)
        if freeze is None:
            return None
        if self._clock() < freeze.timestamp_until:
            return freeze

        self._scheduler.cancel(network)
        del state.reset_frozen[network]
        self._store.save()
        logger.info(f"Expired freeze on '{network}' cleared")
        return None

    def _run_exclusive(
            self,
            origin: Origin,
            params: ResetParams,
            descriptor: NetworkDescriptor,
            reset_type: ResetType,
            started: float,
    ) -> ResetResult:
        network = descriptor.name
        logger.info(
            f"Reset on '{network}' started: commit={params.commit} type={reset_type.value} "
            f"nodes={params.node_count} profile={params.build_profile}"
        )

        def progress(stage: ResetStage, info: Optional[CommitInfo]) -> None:
            self._notifier.notify(origin, Reply(
                ReplyKind.RESET_PROGRESS,
                ResetProgress(
                    network=network,
                    stage=stage,
                    elapsed=self._clock() - started,
                    commit_ref=params.commit,
                    commit_info=info,
                ),
            ))

        def failure(stage: ResetStage, output: str, info: Optional[CommitInfo]) -> ResetResult:
            logger.error(f"Reset on '{network}' failed at {stage.value}: {output}")
            self._notifier.notify(origin, Reply(
                ReplyKind.RESET_PROGRESS,
                ResetProgress(
                    network=network,
                    stage=stage,
                    elapsed=self._clock() - started,
                    commit_ref=params.commit,
                    commit_info=info,
                    error=output,
                    failed=True,
                ),
            ))
            if len(output) > INLINE_OUTPUT_LIMIT:
                self._notifier.attach(origin, ERROR_ARTIFACT_NAME, output)
            return ResetResult(
                outcome=ResetOutcome.FAILED,
                network=network,
                stage=stage,
                output=output,
                commit_info=info,
                elapsed=self._clock() - started,
            )

        # ResolvingCommit
        progress(ResetStage.RESOLVING_COMMIT, None)
        try:
            info = self._resolve_commit(params)
        except SourceControlError as e:
            return failure(ResetStage.RESOLVING_COMMIT, str(e), None)

        # RunningReset
        progress(ResetStage.RUNNING_RESET, info)
        result = self._run_playbook(
            descriptor, self._settings.reset_playbook, reset_extra_vars(params, reset_type)
        )
        if not result.ok:
            return failure(ResetStage.RUNNING_RESET, result.output, info)

        # RunningSetup
        progress(ResetStage.RUNNING_SETUP, info)
        result = self._run_playbook(
            descriptor, self._settings.setup_playbook, setup_extra_vars(params)
        )
        if not result.ok:
            return failure(ResetStage.RUNNING_SETUP, result.output, info)

        # Committing
        try:
            with self._store.mutate() as state:
                state.last_commit_info = info
        except PersistenceError as e:
            return failure(ResetStage.COMMITTING, str(e), info)

        progress(ResetStage.DONE, info)
        elapsed = self._clock() - started
        logger.info(f"Reset on '{network}' completed in {elapsed:.0f}s")
        return ResetResult(
            outcome=ResetOutcome.DONE,
            network=network,
            stage=ResetStage.DONE,
            commit_info=info,
            elapsed=elapsed,
        )

    def _resolve_commit(self, params: ResetParams) -> CommitInfo:
        if params.repo:
            # Refs of a foreign repository cannot be looked up here.
            return CommitInfo(sha=params.commit, html_url="", message="", branches=[])
        return self._resolver.resolve(params.commit)

    def _run_playbook(
            self,
            descriptor: NetworkDescriptor,
            playbook: str,
            extra_vars: str,
    ) -> ProcessResult:
        argv = [
            ANSIBLE_PLAYBOOK_BIN,
            "-i", descriptor.inventory_file,
            playbook,
            "--extra-vars", extra_vars,
        ]
        env: Dict[str, str] = {}
        if self._settings.ansible_config_file:
            env[ANSIBLE_CONFIG_ENV] = self._settings.ansible_config_file
        return self._runner.run(argv, env=env)

    def _target_network(self, state: StateFileData, network: Optional[str]) -> str:
        if network:
            return self._registry.network(network).name
        return self._registry.current_network(state)


# -----------------------------------------------------------------------------
# PLAYBOOK VARIABLES
# -----------------------------------------------------------------------------

def reset_extra_vars(params: ResetParams, reset_type: ResetType) -> str:
    return f"tycho_commit={params.commit} tycho_reset_type={reset_type.value}"


def setup_extra_vars(params: ResetParams) -> str:
    out = (
        f"tycho_commit={params.commit} tycho_build_profile={params.build_profile} "
        f"n_nodes={params.node_count}"
    )
    if params.repo:
        out += f" tycho_repo={params.repo}"
    return out
