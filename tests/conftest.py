from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. Fakes for the external collaborators (notifier, playbook runner,
   commit lookup, node RPC, timers and the clock).
3. Shared fixtures for settings, config files and a wired Operator.
"""

import json
import os
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from tychonet.domain.models import CommitInfo, Origin, ProcessResult, Reply, ReplyKind  # noqa: E402
from tychonet.domain.ports import CommitResolver, Notifier, ProcessRunner, StatusClient  # noqa: E402
from tychonet.domain.settings import Settings  # noqa: E402


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------
class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, interval: float, function: Callable[..., None], args: Tuple = ()) -> None:
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function(*self.args)


class FakeTimerFactory:
    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[..., None], args: Tuple = ()) -> FakeTimer:
        timer = FakeTimer(interval, function, args)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.replies: List[Tuple[Origin, Reply]] = []
        self.attachments: List[Tuple[Origin, str, str]] = []
        self._lock = threading.Lock()

    def notify(self, origin: Origin, reply: Reply) -> None:
        with self._lock:
            self.replies.append((origin, reply))

    def attach(self, origin: Origin, name: str, content: str) -> None:
        with self._lock:
            self.attachments.append((origin, name, content))

    def kinds(self) -> List[ReplyKind]:
        return [reply.kind for _, reply in self.replies]


class FakeRunner(ProcessRunner):
    """Returns queued results; succeeds once the queue is empty."""

    def __init__(self, results: Optional[List[ProcessResult]] = None) -> None:
        self.results = list(results or [])
        self.calls: List[Tuple[List[str], Optional[Dict[str, str]]]] = []

    def run(self, argv: List[str], env: Optional[Dict[str, str]] = None) -> ProcessResult:
        self.calls.append((list(argv), env))
        if self.results:
            return self.results.pop(0)
        return ProcessResult(returncode=0, stdout="ok")


class BlockingRunner(ProcessRunner):
    """Blocks every run until `release` is set."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def run(self, argv: List[str], env: Optional[Dict[str, str]] = None) -> ProcessResult:
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=10)
        return ProcessResult(returncode=0)


class FakeResolver(CommitResolver):
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.refs: List[str] = []

    def resolve(self, ref: str) -> CommitInfo:
        self.refs.append(ref)
        if self.error is not None:
            raise self.error
        return CommitInfo(
            sha="a" * 40,
            html_url=f"https://github.com/broxus/tycho/commit/{'a' * 40}",
            message=f"Merge {ref}\n\nSecond line",
            branches=[ref],
        )


class FakeStatusClient(StatusClient):
    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint

    def get_timings(self) -> Dict[str, Any]:
        return {"lastMcUtime": 1, "mcTimeDiff": 2, "smallestKnownLt": 3}

    def get_param(self, param: int) -> Dict[str, Any]:
        return {"global_id": 42, "seqno": 7, "param": param, "value": {"x": 1}}

    def get_account(self, address: str) -> Dict[str, Any]:
        return {"type": "notExists", "timings": {"genLt": "1", "genUtime": 2}}


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def config_files(tmp_path: Path) -> Dict[str, Path]:
    """Node, logger and zero-state documents on disk."""
    docs = {
        "node": {"port": 30000, "storage": {"root_dir": "/var/tycho"}},
        "logger": {"level": "info", "outputs": [{"type": "stderr"}, {"type": "file"}]},
        "zerostate": {"global_id": 42, "accounts": {}},
    }
    paths: Dict[str, Path] = {}
    for name, value in docs.items():
        path = tmp_path / f"{name}.json"
        path.write_text(json.dumps(value, indent=4), encoding="utf-8")
        paths[name] = path
    return paths


@pytest.fixture
def settings(tmp_path: Path, config_files: Dict[str, Path]) -> Settings:
    return Settings(
        rpc_urls={"main": "http://main:8080/rpc", "dev": "http://dev:8080/rpc"},
        inventory_files={"main": "/etc/ansible/main.ini", "dev": "/etc/ansible/dev.ini"},
        default_network="main",
        ansible_config_file="/etc/ansible/ansible.cfg",
        node_config_file=str(config_files["node"]),
        logger_config_file=str(config_files["logger"]),
        zerostate_file=str(config_files["zerostate"]),
        reset_playbook="reset.yml",
        setup_playbook="setup.yml",
        allowed_groups=[100],
        authentication_enabled=True,
        state_file=str(tmp_path / "state.json"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timers() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def allowed() -> Origin:
    return Origin(chat_id=100, message_id=5)


@pytest.fixture
def stranger() -> Origin:
    return Origin(chat_id=999, message_id=6)


@pytest.fixture
def operator(settings, notifier, runner, resolver, clock, timers):
    """Fully wired Operator over fakes."""
    from tychonet.core.services.operator import Operator

    op = Operator.from_settings(
        settings,
        notifier,
        runner=runner,
        resolver=resolver,
        rpc_factory=FakeStatusClient,
        clock=clock,
        timer_factory=timers,
    )
    yield op
    op.shutdown(wait=True)


@pytest.fixture
def blocking_runner() -> BlockingRunner:
    runner = BlockingRunner()
    yield runner
    runner.release.set()


@pytest.fixture
def make_operator(settings, notifier, clock, timers):
    """Factory for Operators with custom runner, resolver or settings."""
    from tychonet.core.services.operator import Operator

    built = []

    def _make(runner=None, resolver=None, settings_override=None, results=None):
        op = Operator.from_settings(
            settings_override or settings,
            notifier,
            runner=runner or FakeRunner(results),
            resolver=resolver or FakeResolver(),
            rpc_factory=FakeStatusClient,
            clock=clock,
            timer_factory=timers,
        )
        built.append(op)
        return op

    yield _make
    for op in built:
        op.shutdown(wait=True)
