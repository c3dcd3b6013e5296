from __future__ import annotations

"""
Domain Error Taxonomy.

Every failure raised by the configuration engine, the registry and the
persistence layer derives from TychonetError so interface layers can render
them uniformly. Authorization denials, active freezes and concurrent resets
are NOT modelled here: they are regular workflow outcomes.
"""

from typing import Optional


class TychonetError(Exception):
    """Base class for all recoverable domain errors."""


# -----------------------------------------------------------------------------
# EXPRESSION & DOCUMENT ERRORS
# -----------------------------------------------------------------------------

class PathSyntaxError(TychonetError):
    """Malformed path expression."""

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class DocumentError(TychonetError):
    """Base class for path traversal failures inside a JSON document."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class TypeMismatchError(DocumentError):
    """A path segment walked through a node of the wrong container type."""

    def __init__(self, path: str, expected: str) -> None:
        super().__init__(f"expected '{path}' to be an {expected}", path)
        self.expected = expected


class NotFoundError(DocumentError):
    """A key or index is absent from the document."""

    def __init__(self, path: str) -> None:
        super().__init__(f"'{path}' not found", path)


class IndexOutOfBoundsError(DocumentError):
    """An array write targeted an index beyond its length."""

    def __init__(self, path: str, index: int) -> None:
        super().__init__(f"index {index} is out of bounds at '{path}'", path)
        self.index = index


class RootDeleteError(DocumentError):
    """Deleting the document root is forbidden."""

    def __init__(self) -> None:
        super().__init__("cannot delete the config root", "")


class ExpressionError(TychonetError):
    """Malformed operator expression (`delete <path>` / `<path> = <json>`)."""


class ParamsError(TychonetError):
    """Malformed reset, freeze or workspace parameters."""


# -----------------------------------------------------------------------------
# REGISTRY ERRORS
# -----------------------------------------------------------------------------

class NetworkNotFoundError(TychonetError):
    def __init__(self, network: str) -> None:
        super().__init__(f"network '{network}' not found")
        self.network = network


class WorkspaceNotFoundError(TychonetError):
    def __init__(self, workspace: str) -> None:
        super().__init__(f"workspace '{workspace}' not found")
        self.workspace = workspace


class DefaultWorkspaceError(TychonetError):
    def __init__(self, workspace: str) -> None:
        super().__init__(f"cannot delete the default workspace '{workspace}'")
        self.workspace = workspace


# -----------------------------------------------------------------------------
# INFRASTRUCTURE ERRORS
# -----------------------------------------------------------------------------

class ConfigurationError(TychonetError):
    """Settings are incomplete or inconsistent. Fatal at startup."""


class PersistenceError(TychonetError):
    """Disk read/write/parse failure on the state file or a config file."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message if path is None else f"{message}: {path}")
        self.path = path


class SourceControlError(TychonetError):
    """Commit lookup failed."""


class RpcError(TychonetError):
    """Node JSON-RPC request failed."""
