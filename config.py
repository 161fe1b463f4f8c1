from __future__ import annotations

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence

USER_CONFIG_PATH = Path(os.getenv("TASK_TREE_CONFIG", "") or Path.home() / ".task_tree_config.yaml")

DEFAULT_API_BASE = "http://localhost:3001/api"
# Above this many root rows the remembered expand-all preference is not auto-applied.
DEFAULT_EXPAND_ALL_THRESHOLD = 200


def _load_config() -> Dict[str, Any]:
    if not USER_CONFIG_PATH.exists():
        return {}
    try:
        data = yaml.safe_load(USER_CONFIG_PATH.read_text()) or {}
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def _save_config(data: Dict[str, Any]) -> None:
    if not data:
        if USER_CONFIG_PATH.exists():
            USER_CONFIG_PATH.unlink()
        return
    USER_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_PATH.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


def _set_value(key: str, value: Any) -> None:
    data = _load_config()
    if value is None or value == "":
        data.pop(key, None)
    else:
        data[key] = value
    _save_config(data)


def get_api_base() -> str:
    env = os.getenv("TASK_TREE_API", "").strip()
    if env:
        return env.rstrip("/")
    return str(_load_config().get("api_base") or DEFAULT_API_BASE).rstrip("/")


def set_api_base(value: str) -> None:
    _set_value("api_base", (value or "").strip())


def get_user_token() -> str:
    env = os.getenv("TASK_TREE_TOKEN", "").strip()
    if env:
        return env
    return str(_load_config().get("token", ""))


def set_user_token(value: str) -> None:
    _set_value("token", (value or "").strip())


def get_user_lang() -> str:
    return str(_load_config().get("lang", "")).strip()


def set_user_lang(value: str) -> None:
    _set_value("lang", (value or "").strip())


def get_expand_all() -> Optional[bool]:
    value = _load_config().get("expand_all")
    return value if isinstance(value, bool) else None


def set_expand_all(enabled: bool) -> None:
    _set_value("expand_all", bool(enabled))


def get_visible_columns() -> Optional[List[str]]:
    value = _load_config().get("columns")
    if not isinstance(value, list):
        return None
    columns = [str(c).strip() for c in value if str(c).strip()]
    return columns or None


def set_visible_columns(columns: Optional[Sequence[str]]) -> None:
    _set_value("columns", list(columns) if columns else None)


def get_expand_all_threshold() -> int:
    raw = _load_config().get("expand_all_threshold")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_EXPAND_ALL_THRESHOLD
    return value if value >= 0 else DEFAULT_EXPAND_ALL_THRESHOLD


def set_expand_all_threshold(value: Optional[int]) -> None:
    _set_value("expand_all_threshold", value)


class UserPreferences:
    """PreferenceStore backed by the user config file."""

    def get_expand_all(self) -> Optional[bool]:
        return get_expand_all()

    def set_expand_all(self, enabled: bool) -> None:
        set_expand_all(enabled)

    def get_columns(self) -> Optional[List[str]]:
        return get_visible_columns()

    def set_columns(self, columns: Sequence[str]) -> None:
        set_visible_columns(columns)
