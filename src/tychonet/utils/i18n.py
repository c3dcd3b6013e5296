from __future__ import annotations

"""
Reply text catalogue.

Operator-facing strings live in JSON locale files under
`interface/locales`. Keys use dot notation (`reply.freeze`) and values are
`str.format` templates.
"""

import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"
LOCALES_REL_PATH = os.path.join("..", "interface", "locales")


class I18n:
    """Loads one locale file and resolves dotted keys against it."""

    def __init__(self, locale: str = DEFAULT_LOCALE):
        self._locale = locale
        self._translations: Dict[str, Any] = {}
        self.is_loaded = False

        base_dir = os.path.dirname(os.path.abspath(__file__))
        self._locales_path = os.path.abspath(os.path.join(base_dir, LOCALES_REL_PATH))

        self.load_locale(locale)

    @property
    def locale(self) -> str:
        return self._locale

    def load_locale(self, locale: str) -> None:
        file_path = os.path.join(self._locales_path, f"{locale}.json")

        if not os.path.exists(file_path):
            logger.warning(f"I18n: Locale resource missing at '{file_path}'. Fallback active.")
            self._translations = {}
            self.is_loaded = False
            return

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                self._translations = json.load(f)
            self._locale = locale
            self.is_loaded = True
            logger.debug(f"I18n: Loaded locale '{locale}'")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"I18n: Corrupted locale file {file_path}: {e}")
            self._translations = {}
            self.is_loaded = False

    def t(self, key: str, **kwargs: Any) -> str:
        """
        Resolve and format a string.

        Args:
            key: Dotted path into the locale file, e.g. 'reply.freeze'.
            **kwargs: Values for the template placeholders.

        Returns:
            str: The formatted string, or the key itself when it does not
                resolve to a string.
        """
        current: Any = self._translations
        for part in key.split("."):
            if not isinstance(current, dict):
                return key
            current = current.get(part)

        if not isinstance(current, str):
            return key

        if not kwargs:
            return current
        try:
            return current.format(**kwargs)
        except (KeyError, IndexError) as e:
            logger.debug(f"I18n: Missing placeholder for '{key}': {e}")
            return current


i18n = I18n(DEFAULT_LOCALE)
