from core.console.interface.constants import LANG_PACK
from core.console.interface.i18n import available_languages, effective_lang, locale_lang, translate


def test_tests_run_in_english(monkeypatch):
    monkeypatch.delenv("TASK_TREE_LANG", raising=False)
    assert effective_lang("ru") == "en"
    assert translate("SELECTED", count=3) == "3 selected"


def test_env_language_wins(monkeypatch):
    monkeypatch.setenv("TASK_TREE_LANG", "ru")
    assert translate("SAVED") == "Сохранено"


def test_missing_translation_falls_back_to_english(monkeypatch):
    monkeypatch.setenv("TASK_TREE_LANG", "ru")
    assert translate("SORTED", column="Title", order="asc") == "Sorted by Title (asc)"
    assert set(LANG_PACK["en"]) <= set(LANG_PACK["ru"])


def test_unknown_key_and_missing_arguments():
    assert translate("NO_SUCH_KEY") == "NO_SUCH_KEY"
    assert translate("SAVE_FAILED") == "Save failed: {error}"


def test_locale_picks_language_when_nothing_else_does(monkeypatch, tmp_path):
    import config

    monkeypatch.setattr(config, "USER_CONFIG_PATH", tmp_path / "cfg.yaml")
    monkeypatch.delenv("TASK_TREE_LANG", raising=False)
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    monkeypatch.delenv("LC_ALL", raising=False)
    monkeypatch.delenv("LC_MESSAGES", raising=False)
    monkeypatch.setenv("LANG", "ru_RU.UTF-8")
    assert locale_lang() == "ru"
    assert effective_lang() == "ru"
    assert effective_lang("en") == "en"
    config.set_user_lang("en")
    assert effective_lang() == "en"


def test_locale_without_a_known_language(monkeypatch):
    monkeypatch.setenv("LC_ALL", "C.UTF-8")
    monkeypatch.setenv("LANG", "ru_RU.UTF-8")
    assert locale_lang() is None
    monkeypatch.setenv("LC_ALL", "")
    assert locale_lang() == "ru"
    assert available_languages() == ["en", "ru"]
