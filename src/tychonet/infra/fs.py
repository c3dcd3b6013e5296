from __future__ import annotations

"""
FileSystem Infrastructure Layer.

Provides path resolution for persistent application data and whole-file
read/write primitives for JSON artifacts. Writes go through a temporary
sibling file followed by an atomic rename so a crash never leaves a
half-written state or config file behind.
"""

import os
import tempfile
from typing import Optional

from tychonet.domain.errors import PersistenceError

# -----------------------------------------------------------------------------
# GLOBAL CONSTANTS
# -----------------------------------------------------------------------------

APP_DIR_NAME = "Tychonet"
UNIX_APP_DIR_NAME = ".tychonet"
DEFAULT_STATE_FILENAME = "state.json"
DEFAULT_SETTINGS_FILENAME = "settings.json"

# -----------------------------------------------------------------------------
# PATH RESOLUTION API
# -----------------------------------------------------------------------------

def get_user_data_dir() -> str:
    """
    Resolve the standard OS-specific directory for persistent application data.

    Standards:
    - Windows: %LOCALAPPDATA%/Tychonet
    - Linux/Mac: ~/.tychonet

    Returns:
        str: Absolute path to the application data directory.
    """
    path: str = ""

    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        if base:
            path = os.path.join(base, APP_DIR_NAME)

    if not path:
        path = os.path.join(os.path.expanduser("~"), UNIX_APP_DIR_NAME)

    return os.path.abspath(path)


def normalize_path(path: Optional[str], fallback: str) -> str:
    """
    Normalize a path string into an absolute filesystem path.

    Handles environment variable expansion ($VAR/%VAR%) and user home
    shortcuts (~/). Reverts to fallback if the input is empty.

    Args:
        path: Raw input path string.
        fallback: Default path to use if the input is empty.

    Returns:
        str: Normalized absolute path.
    """
    p = (path or "").strip() or fallback
    return os.path.abspath(os.path.expandvars(os.path.expanduser(p)))

# -----------------------------------------------------------------------------
# FILE I/O API
# -----------------------------------------------------------------------------

def read_text(path: str) -> str:
    """
    Read a UTF-8 text file.

    Raises:
        PersistenceError: If the file cannot be read.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise PersistenceError(f"failed to read file ({e.strerror or e})", path) from e


def atomic_write_text(path: str, content: str) -> None:
    """
    Replace a file's content atomically.

    The content is written to a temporary file in the same directory,
    flushed, and renamed over the target.

    Raises:
        PersistenceError: If any step fails. The target is left untouched.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = ""
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=directory
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                pass
        raise PersistenceError(f"failed to write file ({e.strerror or e})", path) from e
