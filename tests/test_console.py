from pathlib import Path

import console
from core import FieldSchema
from infrastructure.http_task_store import HttpTaskStore
from infrastructure.memory_task_store import MemoryTaskStore


def test_parse_columns():
    assert console.parse_columns(None) is None
    assert console.parse_columns(" , ") is None
    assert console.parse_columns("title, status,,dueAt") == ["title", "status", "dueAt"]


def test_parser_defaults():
    args = console.build_parser().parse_args([])
    assert args.seed is None
    assert args.theme == "dark-olive"


def test_seed_builds_memory_store(tmp_path):
    seed = tmp_path / "seed.yaml"
    seed.write_text("tasks:\n  - {title: One}\n", encoding="utf-8")
    args = console.build_parser().parse_args(["--seed", str(seed)])
    assert isinstance(args.seed, Path)
    assert isinstance(console.build_store(args), MemoryTaskStore)


def test_api_builds_http_store():
    args = console.build_parser().parse_args(["--api", "https://tasks.example.com/api/"])
    store = console.build_store(args)
    assert isinstance(store, HttpTaskStore)
    assert store.client.base_url == "https://tasks.example.com/api"


async def test_load_schema_from_store(store):
    schema = await console.load_schema(store)
    assert isinstance(schema, FieldSchema)
    assert schema.title.is_required


def test_unreadable_seed_exits_with_error(tmp_path, capsys):
    assert console.main(["--seed", str(tmp_path / "missing.yaml")]) == 1
    assert "task-tree:" in capsys.readouterr().err


def _isolated_config(monkeypatch, tmp_path):
    import config

    monkeypatch.setattr(config, "USER_CONFIG_PATH", tmp_path / "cfg.yaml")
    monkeypatch.delenv("TASK_TREE_API", raising=False)
    monkeypatch.delenv("TASK_TREE_TOKEN", raising=False)
    return config


def test_config_command_saves_settings(monkeypatch, tmp_path, capsys):
    config = _isolated_config(monkeypatch, tmp_path)
    argv = [
        "config",
        "--api", "https://tasks.example.com/api/",
        "--token", "s3cret",
        "--lang", "ru",
        "--threshold", "75",
        "--columns", "title, status",
    ]
    assert console.main(argv) == 0
    assert config.get_api_base() == "https://tasks.example.com/api"
    assert config.get_user_token() == "s3cret"
    assert config.get_user_lang() == "ru"
    assert config.get_expand_all_threshold() == 75
    assert config.get_visible_columns() == ["title", "status"]
    out = capsys.readouterr().out
    assert "token: ***" in out
    assert "s3cret" not in out


def test_config_command_clears_token_and_columns(monkeypatch, tmp_path, capsys):
    config = _isolated_config(monkeypatch, tmp_path)
    config.set_user_token("abc")
    config.set_visible_columns(["title"])
    assert console.main(["config", "--unset-token", "--columns", ""]) == 0
    assert config.get_user_token() == ""
    assert config.get_visible_columns() is None
    assert "columns: -" in capsys.readouterr().out


def test_config_command_rejects_bad_threshold(monkeypatch, tmp_path, capsys):
    import pytest

    _isolated_config(monkeypatch, tmp_path)
    with pytest.raises(SystemExit):
        console.main(["config", "--threshold", "-1"])
    assert "must be 0 or more" in capsys.readouterr().err
