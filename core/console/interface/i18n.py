"""UI strings: language resolution and lookup in ``LANG_PACK``.

Resolution order: ``TASK_TREE_LANG``, the explicit argument, the ``lang``
config key, the POSIX locale (``LC_ALL``, ``LC_MESSAGES``, ``LANG``), then
English. Test runs always render English unless ``TASK_TREE_LANG`` is set.
"""

import os
from typing import List, Optional

from config import get_user_lang
from core.console.interface.constants import LANG_PACK

BASE_LANG = "en"
LOCALE_VARS = ("LC_ALL", "LC_MESSAGES", "LANG")


def _fill_lang_pack_defaults(base_lang: str = BASE_LANG) -> None:
    """Backfill missing translations with English defaults."""
    base = LANG_PACK.get(base_lang, {})
    for lang, values in LANG_PACK.items():
        if lang == base_lang:
            continue
        for key, val in base.items():
            values.setdefault(key, val)


_fill_lang_pack_defaults()


def available_languages() -> List[str]:
    return sorted(LANG_PACK)


def locale_lang() -> Optional[str]:
    """Language part of the first set locale variable ("ru_RU.UTF-8" -> "ru")."""
    for var in LOCALE_VARS:
        value = os.getenv(var, "").strip()
        if not value:
            continue
        code = value.split(".", 1)[0].split("_", 1)[0].lower()
        # C/POSIX carry no language, and the first set variable wins.
        return code if code in LANG_PACK else None
    return None


def effective_lang(preferred: Optional[str] = None) -> str:
    env_lang = os.getenv("TASK_TREE_LANG")
    if env_lang and env_lang in LANG_PACK:
        return env_lang
    if os.getenv("PYTEST_CURRENT_TEST"):
        return BASE_LANG
    for candidate in (preferred, get_user_lang()):
        if candidate and candidate in LANG_PACK:
            return candidate
    return locale_lang() or BASE_LANG


def translate(key: str, lang: Optional[str] = None, **kwargs) -> str:
    """Translate key using LANG_PACK, falling back to English and then the key."""
    base = LANG_PACK.get(BASE_LANG, {})
    lang_map = LANG_PACK.get(effective_lang(lang), base)
    template = lang_map.get(key) or base.get(key, key)
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError, ValueError):
        return template


__all__ = ["available_languages", "effective_lang", "locale_lang", "translate"]
