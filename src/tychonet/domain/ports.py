from __future__ import annotations

"""
Interfaces of the external collaborators.

The chat transport, the source-control client, the node RPC client and
the playbook runner live outside the core. The services depend only on
these abstract classes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from tychonet.domain.models import CommitInfo, Origin, ProcessResult, Reply


class Notifier(ABC):
    """Delivers replies back to the context a request originated from."""

    @abstractmethod
    def notify(self, origin: Origin, reply: Reply) -> None:
        pass

    @abstractmethod
    def attach(self, origin: Origin, name: str, content: str) -> None:
        """Send `content` as a named document (long outputs)."""
        pass


class CommitResolver(ABC):

    @abstractmethod
    def resolve(self, ref: str) -> CommitInfo:
        """
        Resolve a branch, tag or sha into commit metadata.

        Raises:
            SourceControlError: If the ref cannot be resolved.
        """
        pass


class StatusClient(ABC):

    @abstractmethod
    def get_timings(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_param(self, param: int) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_account(self, address: str) -> Dict[str, Any]:
        pass


class ProcessRunner(ABC):
    """Runs an external command to completion and captures its output."""

    @abstractmethod
    def run(self, argv: List[str], env: Optional[Dict[str, str]] = None) -> ProcessResult:
        pass
