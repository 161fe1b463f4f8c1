#!/usr/bin/env python3
"""task-tree: terminal console over the hierarchical task store."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from application.ports import SchemaProvider
from config import (
    UserPreferences,
    get_api_base,
    get_expand_all_threshold,
    get_user_lang,
    get_user_token,
    get_visible_columns,
    set_api_base,
    set_expand_all_threshold,
    set_user_lang,
    set_user_token,
    set_visible_columns,
)
from core import FieldSchema, TaskTreeError
from core.console.interface.i18n import available_languages
from core.console.interface.tui_app import TaskTreeTUI
from core.console.interface.tui_themes import DEFAULT_THEME, THEMES
from infrastructure.http_task_store import HttpTaskStore, TaskApiClient
from infrastructure.memory_task_store import MemoryTaskStore

TASKS_COLLECTION = "tasks"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="task-tree", description="Browse and edit the task tree in the terminal")
    parser.add_argument("--api", help="REST API base URL (default: config or TASK_TREE_API)")
    parser.add_argument("--seed", type=Path, help="YAML file with demo data; runs against an in-memory store")
    parser.add_argument("--theme", choices=sorted(THEMES), default=DEFAULT_THEME)
    parser.add_argument("--columns", help="Comma-separated field paths to show, in order")
    parser.add_argument("--log-file", type=Path, help="Write warnings to this file")
    parser.set_defaults(func=cmd_tui)

    sub = parser.add_subparsers(dest="command")
    cfg = sub.add_parser("config", help="Show or change saved settings")
    cfg.add_argument("--api", dest="api_base", help="Save the REST API base URL")
    token = cfg.add_mutually_exclusive_group()
    token.add_argument("--token", help="Save the bearer token")
    token.add_argument("--unset-token", action="store_true", help="Forget the saved token")
    cfg.add_argument("--lang", choices=available_languages(), help="Interface language")
    cfg.add_argument("--threshold", type=_non_negative, help="Root count above which expand-all is not restored")
    cfg.add_argument("--columns", dest="saved_columns", help="Comma-separated default columns; empty resets")
    cfg.set_defaults(func=cmd_config)
    return parser


def _non_negative(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {raw}")
    if value < 0:
        raise argparse.ArgumentTypeError("must be 0 or more")
    return value


def parse_columns(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    columns = [part.strip() for part in raw.split(",") if part.strip()]
    return columns or None


def build_store(args):
    if args.seed:
        return MemoryTaskStore.from_yaml(args.seed)
    client = TaskApiClient(args.api or get_api_base(), token_provider=get_user_token)
    return HttpTaskStore(client)


async def load_schema(provider: SchemaProvider) -> FieldSchema:
    descriptors = await provider.fields_for(TASKS_COLLECTION)
    return FieldSchema(TASKS_COLLECTION, descriptors)


def cmd_tui(args) -> int:
    if args.log_file:
        logging.basicConfig(filename=str(args.log_file), level=logging.INFO)
    try:
        store = build_store(args)
        schema = asyncio.run(load_schema(store))
    except TaskTreeError as exc:
        print(f"task-tree: {exc}", file=sys.stderr)
        return 1
    tui = TaskTreeTUI(
        store,
        schema,
        lookup_provider=store,
        preferences=UserPreferences(),
        columns=parse_columns(args.columns),
        theme=args.theme,
        threshold=get_expand_all_threshold(),
    )
    tui.run()
    return 0


def cmd_config(args) -> int:
    """Save the given settings, then print the effective configuration."""
    if args.api_base is not None:
        set_api_base(args.api_base)
    if args.unset_token:
        set_user_token("")
    elif args.token:
        set_user_token(args.token)
    if args.lang:
        set_user_lang(args.lang)
    if args.threshold is not None:
        set_expand_all_threshold(args.threshold)
    if args.saved_columns is not None:
        set_visible_columns(parse_columns(args.saved_columns))
    columns = get_visible_columns()
    print(f"api: {get_api_base()}")
    print(f"token: {'***' if get_user_token() else '-'}")
    print(f"lang: {get_user_lang() or '-'}")
    print(f"expand_all_threshold: {get_expand_all_threshold()}")
    print(f"columns: {', '.join(columns) if columns else '-'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
