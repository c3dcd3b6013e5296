from __future__ import annotations

"""
Unit tests for the Reset Orchestrator.

Drives the reset state machine and the freeze lifecycle over fake
collaborators: a recording notifier, a scripted playbook runner, a fake
commit resolver, a manual clock and manually fired timers.
"""

import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeResolver
from tychonet.core.parsing.params import FreezeRequest
from tychonet.core.services.orchestrator import reset_extra_vars, setup_extra_vars
from tychonet.domain.errors import NetworkNotFoundError, PersistenceError, SourceControlError
from tychonet.domain.models import (
    Origin,
    ProcessResult,
    Reply,
    ReplyKind,
    ResetOutcome,
    ResetParams,
    ResetStage,
    ResetType,
)


def _progress_stages(notifier):
    return [
        reply.data.stage
        for _, reply in notifier.replies
        if reply.kind is ReplyKind.RESET_PROGRESS
    ]


def _read_state(settings) -> dict:
    return json.loads(Path(settings.state_file).read_text(encoding="utf-8"))


# -----------------------------------------------------------------------------
# HAPPY PATH
# -----------------------------------------------------------------------------

def test_reset_runs_both_playbooks_and_commits(operator, allowed, runner, notifier, settings) -> None:
    """TC-01: Auth, freeze check, playbooks, commit; progress at every step."""
    result = operator.orchestrator.reset(allowed, ResetParams(commit="feature"))

    assert result.outcome is ResetOutcome.DONE
    assert result.network == "main"
    assert result.commit_info.sha == "a" * 40

    assert len(runner.calls) == 2
    reset_argv, reset_env = runner.calls[0]
    assert reset_argv == [
        "ansible-playbook", "-i", "/etc/ansible/main.ini", "reset.yml",
        "--extra-vars", "tycho_commit=feature tycho_reset_type=full",
    ]
    assert reset_env == {"ANSIBLE_CONFIG": "/etc/ansible/ansible.cfg"}
    setup_argv, _ = runner.calls[1]
    assert setup_argv[3] == "setup.yml"
    assert setup_argv[-1] == "tycho_commit=feature tycho_build_profile=release n_nodes=13"

    assert _progress_stages(notifier) == [
        ResetStage.RESOLVING_COMMIT,
        ResetStage.RUNNING_RESET,
        ResetStage.RUNNING_SETUP,
        ResetStage.DONE,
    ]
    assert _read_state(settings)["last_commit_info"]["sha"] == "a" * 40
    assert operator.registry.network("main").reset_running is False


def test_reset_uses_persisted_reset_type_unless_overridden(operator, allowed, runner) -> None:
    """TC-02: The state default applies; a `type=` param wins."""
    operator.orchestrator.set_reset_type(ResetType.RESTART)
    operator.orchestrator.reset(allowed, ResetParams())
    assert runner.calls[0][0][-1].endswith("tycho_reset_type=restart")

    operator.orchestrator.reset(allowed, ResetParams(reset_type=ResetType.FULL))
    assert runner.calls[2][0][-1].endswith("tycho_reset_type=full")


def test_reset_targets_explicit_network(operator, allowed, runner) -> None:
    """TC-03: `network=` selects the inventory."""
    result = operator.orchestrator.reset(allowed, ResetParams(network="dev"))

    assert result.network == "dev"
    assert runner.calls[0][0][2] == "/etc/ansible/dev.ini"


def test_reset_unknown_network(operator, allowed) -> None:
    with pytest.raises(NetworkNotFoundError):
        operator.orchestrator.reset(allowed, ResetParams(network="ghost"))


def test_repo_override_skips_lookup(operator, allowed, runner, resolver) -> None:
    """TC-04: Foreign refs are passed through unresolved."""
    result = operator.orchestrator.reset(allowed, ResetParams(commit="deadbeef", repo="me/fork"))

    assert result.ok
    assert resolver.refs == []
    assert result.commit_info.sha == "deadbeef"
    assert runner.calls[1][0][-1].endswith("tycho_repo=me/fork")


def test_no_ansible_config_means_empty_env(make_operator, settings, allowed) -> None:
    op = make_operator(settings_override=replace(settings, ansible_config_file=""))
    runner = op.orchestrator._runner
    op.orchestrator.reset(allowed, ResetParams())
    assert runner.calls[0][1] == {}


# -----------------------------------------------------------------------------
# TERMINAL NON-SUCCESS OUTCOMES
# -----------------------------------------------------------------------------

def test_reset_denied(operator, stranger, runner, notifier) -> None:
    """TC-05: Callers outside the allow-list are denied without side effects."""
    result = operator.orchestrator.reset(stranger, ResetParams())

    assert result.outcome is ResetOutcome.DENIED
    assert runner.calls == []
    assert notifier.kinds() == [ReplyKind.ACCESS_DENIED]


def test_denied_caller_with_unknown_network(operator, stranger, notifier) -> None:
    """TC-05b: A denied caller gets exactly one outcome, even for unknown networks."""
    result = operator.orchestrator.reset(stranger, ResetParams(network="ghost"))

    assert result.outcome is ResetOutcome.DENIED
    assert result.network == "ghost"
    assert notifier.kinds() == [ReplyKind.ACCESS_DENIED]


def test_auth_disabled_allows_anyone(make_operator, settings, stranger) -> None:
    op = make_operator(settings_override=replace(settings, authentication_enabled=False))
    assert op.orchestrator.reset(stranger, ResetParams()).ok


def test_reset_playbook_failure_with_long_output(make_operator, allowed, notifier, settings) -> None:
    """TC-06: Long output is attached as error.txt and setup never runs."""
    output = "fatal: [node1]: FAILED!\n" * 20
    op = make_operator(results=[ProcessResult(returncode=2, stdout=output)])

    result = op.orchestrator.reset(allowed, ResetParams())

    assert result.outcome is ResetOutcome.FAILED
    assert result.stage is ResetStage.RUNNING_RESET
    assert result.output == output
    assert len(op.orchestrator._runner.calls) == 1
    assert notifier.attachments == [(allowed, "error.txt", output)]
    assert op.registry.network("main").reset_running is False
    assert op.orchestrator.get_commit() is None

    failed = notifier.replies[-1][1].data
    assert failed.failed is True and failed.error == output


def test_setup_failure_with_short_output(make_operator, allowed, notifier) -> None:
    """TC-07: Short output stays inline; no attachment."""
    op = make_operator(results=[
        ProcessResult(returncode=0),
        ProcessResult(returncode=1, stdout="", stderr="no hosts matched"),
    ])

    result = op.orchestrator.reset(allowed, ResetParams())

    assert result.stage is ResetStage.RUNNING_SETUP
    assert result.output == "no hosts matched"
    assert notifier.attachments == []


def test_commit_lookup_failure(make_operator, allowed, notifier) -> None:
    """TC-08: An unresolvable ref fails before any playbook runs."""
    op = make_operator(resolver=FakeResolver(SourceControlError("commit not found: nope")))

    result = op.orchestrator.reset(allowed, ResetParams(commit="nope"))

    assert result.outcome is ResetOutcome.FAILED
    assert result.stage is ResetStage.RESOLVING_COMMIT
    assert "commit not found" in result.output
    assert op.orchestrator._runner.calls == []
    assert op.registry.network("main").reset_running is False


def test_runner_crash_releases_network(make_operator, allowed) -> None:
    """TC-09: Exclusivity is released even when the runner raises."""
    runner = MagicMock()
    runner.run.side_effect = RuntimeError("fork failed")
    op = make_operator(runner=runner)

    with pytest.raises(RuntimeError):
        op.orchestrator.reset(allowed, ResetParams())

    assert op.registry.network("main").reset_running is False


def test_submitted_crash_is_reported(make_operator, allowed, notifier) -> None:
    """TC-10: A crashing worker notifies an error and re-raises."""
    runner = MagicMock()
    runner.run.side_effect = RuntimeError("fork failed")
    op = make_operator(runner=runner)

    future = op.orchestrator.submit_reset(allowed, ResetParams())

    with pytest.raises(RuntimeError):
        future.result(timeout=5)
    assert notifier.kinds()[-1] is ReplyKind.ERROR


# -----------------------------------------------------------------------------
# EXCLUSIVITY
# -----------------------------------------------------------------------------

def test_concurrent_reset_is_rejected(make_operator, blocking_runner, allowed, notifier) -> None:
    """TC-11: Of two simultaneous resets exactly one runs."""
    op = make_operator(runner=blocking_runner)

    first = op.orchestrator.submit_reset(allowed, ResetParams())
    assert blocking_runner.entered.wait(timeout=5)

    second = op.orchestrator.reset(allowed, ResetParams())
    assert second.outcome is ResetOutcome.ALREADY_RUNNING
    assert ReplyKind.RESET_ALREADY_RUNNING in notifier.kinds()

    blocking_runner.release.set()
    assert first.result(timeout=5).outcome is ResetOutcome.DONE
    assert blocking_runner.calls == 2


def test_other_network_is_not_blocked(make_operator, blocking_runner, allowed) -> None:
    """TC-12: Exclusivity is per network."""
    op = make_operator(runner=blocking_runner)

    first = op.orchestrator.submit_reset(allowed, ResetParams())
    assert blocking_runner.entered.wait(timeout=5)

    dev = op.registry.network("dev")
    assert op.registry.network("main").reset_running is True
    assert dev.try_begin_reset() is True
    dev.end_reset()

    blocking_runner.release.set()
    assert first.result(timeout=5).ok


# -----------------------------------------------------------------------------
# FREEZE
# -----------------------------------------------------------------------------

def test_freeze_blocks_reset_until_expiry(operator, allowed, runner, notifier, clock, timers) -> None:
    """TC-13: Frozen resets are refused until the expiry timer fires."""
    created = operator.orchestrator.freeze(allowed, FreezeRequest(duration=1800, reason="demo"))
    assert created.created is True
    assert timers.last.interval == 1800

    clock.advance(60)
    blocked = operator.orchestrator.reset(allowed, ResetParams())
    assert blocked.outcome is ResetOutcome.ALREADY_FROZEN
    assert blocked.freeze.remaining(clock()) == 1740
    assert blocked.freeze.reason == "demo"
    assert runner.calls == []

    clock.advance(1740)
    timers.last.fire()
    assert operator.orchestrator.get_freeze() is None
    assert notifier.replies[-1] == (allowed, Reply(ReplyKind.UNFREEZE, "main"))

    assert operator.orchestrator.reset(allowed, ResetParams()).ok


def test_freeze_is_per_network(operator, allowed) -> None:
    """TC-14: A freeze on one network does not block another."""
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=600), network="dev")

    assert operator.orchestrator.reset(allowed, ResetParams()).ok
    frozen = operator.orchestrator.reset(allowed, ResetParams(network="dev"))
    assert frozen.outcome is ResetOutcome.ALREADY_FROZEN


def test_refreeze_returns_existing(operator, allowed, timers) -> None:
    """TC-15: An active freeze is not replaced."""
    first = operator.orchestrator.freeze(allowed, FreezeRequest(duration=600))
    second = operator.orchestrator.freeze(allowed, FreezeRequest(duration=3600, reason="other"))

    assert second.created is False
    assert second.freeze == first.freeze
    assert len(timers.timers) == 1


def test_freeze_is_persisted(operator, allowed, settings, clock) -> None:
    """TC-16: The freeze entry survives in the state file."""
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=600, reason="r"))

    entry = _read_state(settings)["reset_frozen"]["main"]
    assert entry["timestamp_until"] == int(clock()) + 600
    assert entry["chat_id"] == allowed.chat_id
    assert entry["reason"] == "r"


def test_unfreeze(operator, allowed, timers, settings) -> None:
    """TC-17: Unfreeze cancels the timer and clears the entry."""
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=600))

    assert operator.orchestrator.unfreeze() is True
    assert timers.last.cancelled is True
    assert _read_state(settings)["reset_frozen"] == {}


def test_unfreeze_not_frozen_is_noop(operator) -> None:
    """TC-18: Unfreezing a free network succeeds without changes."""
    assert operator.orchestrator.unfreeze() is False
    assert operator.orchestrator.unfreeze("dev") is False


def test_expired_freeze_cleared_on_reset(operator, allowed, clock, timers) -> None:
    """TC-19: A freeze past its expiry does not block, even if the timer never fired."""
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=60))
    clock.advance(61)

    assert operator.orchestrator.reset(allowed, ResetParams()).ok
    assert operator.orchestrator.get_freeze() is None
    assert timers.last.cancelled is True


def test_stale_expiry_keeps_newer_freeze(operator, allowed, clock, timers) -> None:
    """TC-20: The timer of a replaced freeze does not lift the new one."""
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=60))
    old_timer = timers.last
    operator.orchestrator.unfreeze()
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=600))

    old_timer.cancelled = False
    old_timer.fire()

    assert operator.orchestrator.get_freeze() is not None


# -----------------------------------------------------------------------------
# STARTUP
# -----------------------------------------------------------------------------

def _write_state(settings, data: dict) -> None:
    Path(settings.state_file).write_text(json.dumps(data), encoding="utf-8")


def test_start_rearms_unexpired_freeze(make_operator, settings, clock, timers) -> None:
    """TC-21: Persisted freezes get their timers back after a restart."""
    _write_state(settings, {
        "reset_frozen": {
            "main": {"network": "main", "timestamp_until": int(clock()) + 300, "chat_id": 100},
        },
    })
    op = make_operator()

    op.start(record_commit=False)

    assert op.orchestrator.scheduler.is_scheduled("main")
    assert timers.last.interval == 300


def test_start_clears_freeze_expired_offline(make_operator, settings, clock, notifier) -> None:
    """TC-22: Freezes that ended while offline are lifted and reported."""
    _write_state(settings, {
        "reset_frozen": {
            "dev": {"network": "dev", "timestamp_until": int(clock()) - 5, "chat_id": 100, "message_id": 3},
        },
    })
    op = make_operator()

    op.start(record_commit=False)

    assert op.orchestrator.get_freeze("dev") is None
    assert notifier.replies == [(Origin(100, 3), Reply(ReplyKind.UNFREEZE, "dev"))]
    assert _read_state(settings)["reset_frozen"] == {}


def test_start_records_initial_commit(make_operator, settings) -> None:
    """TC-23: The default branch head is recorded when nothing is known yet."""
    resolver = FakeResolver()
    op = make_operator(resolver=resolver)

    op.start()

    assert resolver.refs == ["master"]
    assert op.orchestrator.get_commit().sha == "a" * 40


def test_start_keeps_known_commit(make_operator, settings) -> None:
    _write_state(settings, {"last_commit_info": {"sha": "b" * 40, "html_url": "", "message": "m"}})
    resolver = FakeResolver()
    op = make_operator(resolver=resolver)

    op.start()

    assert resolver.refs == []
    assert op.orchestrator.get_commit().sha == "b" * 40


def test_start_tolerates_lookup_failure(make_operator) -> None:
    op = make_operator(resolver=FakeResolver(SourceControlError("rate limited")))
    op.start()
    assert op.orchestrator.get_commit() is None


# -----------------------------------------------------------------------------
# RESET TYPE & PLAYBOOK VARIABLES
# -----------------------------------------------------------------------------

def test_reset_type_is_persisted(operator, settings) -> None:
    assert operator.orchestrator.get_reset_type() is ResetType.FULL
    operator.orchestrator.set_reset_type(ResetType.RESTART)

    assert operator.orchestrator.get_reset_type() is ResetType.RESTART
    assert _read_state(settings)["reset_type"] == "restart"


def test_extra_vars() -> None:
    params = ResetParams(commit="abc", node_count=4, build_profile="debug", repo="me/fork")

    assert reset_extra_vars(params, ResetType.RESTART) == "tycho_commit=abc tycho_reset_type=restart"
    assert setup_extra_vars(params) == (
        "tycho_commit=abc tycho_build_profile=debug n_nodes=4 tycho_repo=me/fork"
    )


# -----------------------------------------------------------------------------
# PERSISTENCE FAILURES
# -----------------------------------------------------------------------------

SAVE_TARGET = "tychonet.core.services.state_store.atomic_write_text"


def test_freeze_save_failure_keeps_freeze_armed(operator, allowed, timers) -> None:
    """TC-24: The error surfaces; the freeze and its timer stay active."""
    with patch(SAVE_TARGET, side_effect=PersistenceError("disk full")):
        with pytest.raises(PersistenceError):
            operator.orchestrator.freeze(allowed, FreezeRequest(duration=600))

    assert operator.orchestrator.get_freeze() is not None
    assert operator.orchestrator.scheduler.is_scheduled("main")
    assert timers.last.cancelled is False


def test_unfreeze_save_failure_keeps_freeze_lifted(operator, allowed, timers) -> None:
    operator.orchestrator.freeze(allowed, FreezeRequest(duration=600))

    with patch(SAVE_TARGET, side_effect=PersistenceError("disk full")):
        with pytest.raises(PersistenceError):
            operator.orchestrator.unfreeze()

    assert operator.orchestrator.get_freeze() is None
    assert timers.last.cancelled is True


def test_commit_save_failure_fails_committing(operator, allowed, notifier) -> None:
    """TC-25: A failed commit save ends in Failed(Committing) and frees the network."""
    with patch(SAVE_TARGET, side_effect=PersistenceError("disk full")):
        result = operator.orchestrator.reset(allowed, ResetParams(commit="feature"))

    assert result.outcome is ResetOutcome.FAILED
    assert result.stage is ResetStage.COMMITTING
    assert "disk full" in result.output
    assert operator.orchestrator.get_commit() == result.commit_info
    assert notifier.replies[-1][1].data.failed is True

    assert operator.orchestrator.reset(allowed, ResetParams()).ok
