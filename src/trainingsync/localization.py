"""Localized strings for calendar event content."""

import json
import logging
from functools import lru_cache
from importlib import resources
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en-US"


@lru_cache(maxsize=None)
def _load_strings(locale: str) -> Dict[str, str]:
    resource = resources.files("trainingsync.resources").joinpath(
        f"strings.{locale}.json"
    )
    if not resource.is_file():
        return {}
    return dict(json.loads(resource.read_text(encoding="utf-8")))


class Localizer:
    """Resolves named string keys for one locale.

    Lookup falls back to the default locale and finally to the key itself, so a
    missing translation never breaks event creation.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE):
        self.locale = locale
        if not _load_strings(locale):
            logger.warning(
                f"No string resources for locale {locale}, using {DEFAULT_LOCALE}"
            )

    def get_string(self, key: str, *args: Any) -> str:
        """Resolve ``key`` and interpolate positional ``{0}`` style arguments."""
        template = _load_strings(self.locale).get(key)
        if template is None:
            template = _load_strings(DEFAULT_LOCALE).get(key, key)
        return template.format(*args) if args else template
