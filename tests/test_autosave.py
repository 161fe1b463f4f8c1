import pytest

from core import SaveFailure, ValidationRejection
from core.console.application.autosave import AutosaveScheduler
from core.console.application.detail_form import DetailForm, serialize


def _autosave(store, schema, scheduler, saved=None):
    return AutosaveScheduler(store, schema, scheduler, on_saved=saved.append if saved is not None else None)


async def test_burst_of_changes_saves_once_with_latest_values(store, schema, scheduler):
    saved = []
    autosave = _autosave(store, schema, scheduler, saved)
    autosave.open(store.snapshot("r1"))
    autosave.form.set_value("title", "Draft")
    scheduler.advance(0.5)
    autosave.form.set_value("title", "Final")
    scheduler.advance(0.79)
    assert store.calls_of("update_one") == []
    scheduler.advance(0.02)
    assert await autosave.last_dispatch
    calls = store.calls_of("update_one")
    assert len(calls) == 1
    task_id, payload = calls[0]
    assert task_id == "r1"
    assert payload["title"] == "Final"
    # Full editable field set, never a diff.
    assert {"status", "urgency", "tags", "estimate"} <= set(payload)
    assert [t.title for t in saved] == ["Final"]


async def test_close_flushes_pending_save(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("c1"))
    autosave.form.set_value("summary", "typed quickly")
    scheduler.advance(0.2)
    flush = autosave.close()
    assert flush is not None
    assert await flush
    scheduler.advance(5)
    calls = store.calls_of("update_one")
    assert [(tid, payload["summary"]) for tid, payload in calls] == [("c1", "typed quickly")]
    assert not autosave.is_open


async def test_close_without_pending_change_does_not_save(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("c1"))
    assert autosave.close() is None
    assert store.calls_of("update_one") == []


async def test_unchanged_serialization_skips_write(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    task = store.snapshot("r1")
    autosave.open(task)
    autosave.form.set_value("title", task.title)
    scheduler.advance(0.8)
    assert await autosave.last_dispatch is False
    assert await autosave.title_blur() is False
    assert store.calls_of("update_one") == []


async def test_failed_autosave_keeps_values_for_next_attempt(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("r1"))
    store.failures["update_one"] = SaveFailure("backend down")
    autosave.form.set_value("title", "Renamed")
    scheduler.advance(0.8)
    assert await autosave.last_dispatch is False
    assert autosave.last_error == "backend down"
    del store.failures["update_one"]
    assert await autosave.perform_save()
    assert autosave.last_error is None
    assert len(store.calls_of("update_one")) == 2


async def test_status_change_is_narrow_and_immediate(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("r1"))
    assert await autosave.change_status("completed")
    assert store.calls_of("update_one") == [("r1", {"status": "completed"})]
    assert autosave.form.get("status") == "completed"


async def test_metadata_must_be_json(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("r1"))
    with pytest.raises(ValidationRejection):
        await autosave.save_metadata("{not json")
    assert autosave.field_errors["metadata"] == "Invalid JSON"
    assert store.calls_of("update_one") == []

    assert await autosave.save_metadata('{"source": "import"}')
    assert "metadata" not in autosave.field_errors
    assert store.calls_of("update_one") == [("r1", {"metadata": {"source": "import"}})]


async def test_empty_metadata_saves_empty_object(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("r1"))
    assert await autosave.save_metadata("   ")
    assert store.calls_of("update_one") == [("r1", {"metadata": {}})]


async def test_expected_count_saved_only_when_changed(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    task = store.snapshot("r1").with_values({"batchCounters": {"expectedCount": 5, "receivedCount": 2}})
    autosave.open(task)
    assert not await autosave.save_expected_count("5")
    assert store.calls_of("update_one") == []
    assert await autosave.save_expected_count("oops")
    assert store.calls_of("update_one") == [
        ("r1", {"batchCounters": {"expectedCount": 0, "receivedCount": 2}})
    ]


async def test_webhook_config_is_a_narrow_update(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("r1"))
    config = {"url": "https://hooks.example.com/t", "method": "POST"}
    assert await autosave.save_webhook_config(config)
    assert store.calls_of("update_one") == [("r1", {"webhookConfig": config})]
    assert store.snapshot("r1").webhook_config == config
    assert not autosave.pending.timer_pending


async def test_create_requires_title(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(None, parent=store.snapshot("r1"))
    assert autosave.is_creating
    assert autosave.form.get("parentId") == "r1"
    with pytest.raises(ValidationRejection):
        await autosave.submit()
    assert autosave.field_errors["title"] == "Title is required"
    assert store.calls_of("create_one") == []


async def test_create_sends_parent_and_closes(store, schema, scheduler):
    saved = []
    autosave = _autosave(store, schema, scheduler, saved)
    autosave.open(None, parent=store.snapshot("c2"))
    autosave.form.set_value("title", "New subtask")
    autosave.form.set_value("tags", "x, y")
    created = await autosave.submit()
    payload = store.calls_of("create_one")[0]
    assert payload["parentId"] == "c2"
    assert payload["tags"] == ["x", "y"]
    assert created.parent_id == "c2"
    assert saved == [created]
    assert not autosave.is_open
    # Create mode never autosaves.
    assert scheduler.pending() == []


async def test_submit_in_edit_mode_cancels_timer(store, schema, scheduler):
    autosave = _autosave(store, schema, scheduler)
    autosave.open(store.snapshot("r3"))
    autosave.form.set_value("title", "Root three (edited)")
    updated = await autosave.submit()
    assert updated.title == "Root three (edited)"
    scheduler.advance(1)
    assert len(store.calls_of("update_one")) == 1


def test_form_load_and_build_round_trip_types(schema, store):
    form = DetailForm(schema)
    values = form.load(store.snapshot("r3"))
    assert values["tags"] == "a, b, c, d, e"
    assert values["estimate"] == 3
    values["dueAt"] = "2026-03-04T10:30"
    values["billable"] = 1
    data = form.build_task_data(values)
    assert data["tags"] == ["a", "b", "c", "d", "e"]
    assert data["dueAt"] == "2026-03-04T10:30:00Z"
    assert data["billable"] is True
    assert data["assigneeId"] is None


def test_form_defaults_cover_core_fields(schema):
    form = DetailForm(schema)
    values = form.default_values()
    assert values["status"] == "pending"
    assert values["urgency"] == "normal"
    assert values["billable"] is False
    assert serialize({"b": 1, "a": 2}) == serialize({"a": 2, "b": 1})


def test_form_listeners_can_unsubscribe(schema):
    form = DetailForm(schema)
    seen = []
    unsubscribe = form.watch(lambda path, value: seen.append(path))
    form.set_value("title", "x")
    unsubscribe()
    form.set_value("title", "y")
    assert seen == ["title"]
