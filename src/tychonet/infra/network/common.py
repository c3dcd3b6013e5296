from __future__ import annotations

USER_AGENT = "tychonet-bot/1.0"
DEFAULT_TIMEOUT = 10
