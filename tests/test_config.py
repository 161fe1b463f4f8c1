import config


def _isolate(monkeypatch, tmp_path):
    path = tmp_path / "cfg.yaml"
    monkeypatch.setattr(config, "USER_CONFIG_PATH", path)
    monkeypatch.delenv("TASK_TREE_API", raising=False)
    monkeypatch.delenv("TASK_TREE_TOKEN", raising=False)
    return path


def test_expand_all_round_trip(monkeypatch, tmp_path):
    path = _isolate(monkeypatch, tmp_path)
    prefs = config.UserPreferences()
    assert prefs.get_expand_all() is None
    prefs.set_expand_all(True)
    assert path.exists()
    assert prefs.get_expand_all() is True
    prefs.set_expand_all(False)
    assert prefs.get_expand_all() is False


def test_threshold_falls_back_on_bad_values(monkeypatch, tmp_path):
    path = _isolate(monkeypatch, tmp_path)
    assert config.get_expand_all_threshold() == config.DEFAULT_EXPAND_ALL_THRESHOLD
    path.write_text("expand_all_threshold: 25\n", encoding="utf-8")
    assert config.get_expand_all_threshold() == 25
    path.write_text("expand_all_threshold: -3\n", encoding="utf-8")
    assert config.get_expand_all_threshold() == config.DEFAULT_EXPAND_ALL_THRESHOLD
    path.write_text("expand_all_threshold: lots\n", encoding="utf-8")
    assert config.get_expand_all_threshold() == config.DEFAULT_EXPAND_ALL_THRESHOLD


def test_api_base_env_overrides_file(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    assert config.get_api_base() == config.DEFAULT_API_BASE
    config.set_api_base("https://tasks.example.com/api/")
    assert config.get_api_base() == "https://tasks.example.com/api"
    monkeypatch.setenv("TASK_TREE_API", "http://localhost:9000/")
    assert config.get_api_base() == "http://localhost:9000"


def test_clearing_last_value_removes_file(monkeypatch, tmp_path):
    path = _isolate(monkeypatch, tmp_path)
    config.set_user_token("abc")
    assert config.get_user_token() == "abc"
    config.set_user_token("")
    assert not path.exists()
    assert config.get_user_token() == ""


def test_corrupt_file_reads_as_empty(monkeypatch, tmp_path):
    path = _isolate(monkeypatch, tmp_path)
    path.write_text("lang: [unterminated\n", encoding="utf-8")
    assert config.get_user_lang() == ""


def test_user_lang_round_trip(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    config.set_user_lang(" ru ")
    assert config.get_user_lang() == "ru"


def test_visible_columns_round_trip(monkeypatch, tmp_path):
    path = _isolate(monkeypatch, tmp_path)
    prefs = config.UserPreferences()
    assert prefs.get_columns() is None
    prefs.set_columns(["title", "dueAt"])
    assert config.get_visible_columns() == ["title", "dueAt"]
    path.write_text("columns: title\n", encoding="utf-8")
    assert prefs.get_columns() is None
    config.set_visible_columns([])
    assert not path.exists()
