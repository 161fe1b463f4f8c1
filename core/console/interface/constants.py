"""Interface-level constants for the task tree console."""

from typing import Dict

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
DEFAULT_COLUMN_WIDTH = 14
MIN_COLUMN_WIDTH = 4
INDENT = "  "

LANG_PACK: Dict[str, Dict[str, str]] = {
    "en": {
        "TITLE": "Tasks",
        "LOADING": "Loading…",
        "EMPTY": "No tasks. Press n to create one.",
        "LOAD_FAILED": "Failed to load tasks: {error}",
        "CHILDREN_FAILED": "Could not load children, press space to retry",
        "SAVED": "Saved",
        "SAVE_FAILED": "Save failed: {error}",
        "SELECTED": "{count} selected",
        "EXPAND_ALL_ON": "Expand all: on",
        "EXPAND_ALL_OFF": "Expand all: off",
        "BULK_STATUS": "Status → {value} for {count} tasks",
        "BULK_URGENCY": "Urgency → {value} for {count} tasks",
        "ARCHIVED": "Archived {count} tasks",
        "DELETED": "Deleted {count} tasks",
        "CONFIRM_DELETE": "Delete {count} tasks? This cannot be undone. [y/n]",
        "NOTHING_SELECTED": "Nothing selected",
        "NOT_SORTABLE": "Column {column} is not sortable",
        "SORTED": "Sorted by {column} ({order})",
        "FLOW_OPENED": "Flow task {title}: open it in its own view",
        "SEARCH": "Search: {query}",
        "DETAIL_TITLE": "Task details",
        "DETAIL_NEW": "New task",
        "DETAIL_AUTOSAVE": "Changes save automatically",
        "DETAIL_CREATED": "Created {title}",
        "INVALID_JSON": "Invalid JSON",
        "FILTER_TITLE": "Filters",
        "COLUMNS_TITLE": "Columns",
        "FILTERS_CLEARED": "Filters cleared",
        "COLUMN_LOCKED": "Column {column} is always shown",
        "HINT_LIST": "space expand · E expand all · x select · a all · enter edit · s/u status/urgency · A archive · D delete · o details · n new · / search · f filter · F clear · c columns · q quit",
        "HINT_PICKER": "↑/↓ move · space toggle · esc close",
        "HINT_EDIT": "enter save · esc cancel",
        "HINT_EDIT_MULTILINE": "meta+enter save · esc cancel",
        "HINT_CHOICE": "↑/↓ choose · enter pick · esc close",
        "HINT_DETAIL": "↑/↓ field · enter edit · c create/save · esc close",
    },
    "ru": {
        "TITLE": "Задачи",
        "LOADING": "Загрузка…",
        "EMPTY": "Задач нет. Нажмите n, чтобы создать.",
        "LOAD_FAILED": "Не удалось загрузить задачи: {error}",
        "CHILDREN_FAILED": "Не удалось загрузить подзадачи, пробел повторит",
        "SAVED": "Сохранено",
        "SAVE_FAILED": "Ошибка сохранения: {error}",
        "SELECTED": "Выбрано: {count}",
        "EXPAND_ALL_ON": "Развернуть всё: вкл",
        "EXPAND_ALL_OFF": "Развернуть всё: выкл",
        "ARCHIVED": "В архиве: {count}",
        "DELETED": "Удалено: {count}",
        "CONFIRM_DELETE": "Удалить задачи ({count})? Отменить нельзя. [y/n]",
        "NOTHING_SELECTED": "Ничего не выбрано",
        "SEARCH": "Поиск: {query}",
        "DETAIL_TITLE": "Карточка задачи",
        "DETAIL_NEW": "Новая задача",
        "DETAIL_AUTOSAVE": "Изменения сохраняются автоматически",
        "INVALID_JSON": "Некорректный JSON",
        "FILTER_TITLE": "Фильтры",
        "COLUMNS_TITLE": "Столбцы",
        "FILTERS_CLEARED": "Фильтры сброшены",
        "HINT_PICKER": "↑/↓ выбор · пробел отметить · esc закрыть",
    },
}
