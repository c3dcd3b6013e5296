from __future__ import annotations

"""
Domain Constants.

Centralized defaults shared by the parsers, the state store and the
reset workflow.
"""

CURRENT_STATE_VERSION = "2.0.0"
ENV_PREFIX = "TYCHONET"

# -----------------------------------------------------------------------------
# SOURCE CONTROL
# -----------------------------------------------------------------------------
DEFAULT_BRANCH = "master"
DEFAULT_GITHUB_REPO = "broxus/tycho"

# -----------------------------------------------------------------------------
# RESET DEFAULTS
# -----------------------------------------------------------------------------
DEFAULT_COMMIT = DEFAULT_BRANCH
DEFAULT_NODE_COUNT = 13
DEFAULT_BUILD_PROFILE = "release"

# Captured output longer than this is sent as an attachment.
INLINE_OUTPUT_LIMIT = 256
ERROR_ARTIFACT_NAME = "error.txt"

ANSIBLE_CONFIG_ENV = "ANSIBLE_CONFIG"
ANSIBLE_PLAYBOOK_BIN = "ansible-playbook"

# -----------------------------------------------------------------------------
# FREEZE
# -----------------------------------------------------------------------------
MAX_FREEZE_SECONDS = 24 * 60 * 60

# -----------------------------------------------------------------------------
# WORKSPACES & DIFF
# -----------------------------------------------------------------------------
DEFAULT_WORKSPACE = "default"
DIFF_CONTEXT_LINES = 3
DIFF_UNCHANGED = "unchanged"
DIFF_ELISION = "..."
