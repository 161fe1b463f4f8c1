from core.console.application.cell_edit import EditPhase
from core.console.application.task_tree import TaskTree


async def _tree(store, schema, scheduler, **kwargs):
    tree = TaskTree(store, schema, lookup_provider=store, scheduler=scheduler, **kwargs)
    await tree.load_lookups()
    await tree.load_roots()
    return tree


def _shape(tree):
    return [(row.task_id, row.depth) for row in tree.rows()]


async def test_rows_follow_expansion(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    assert _shape(tree) == [("r1", 0), ("r2", 0), ("r3", 0)]
    rows = {row.task_id: row for row in tree.rows()}
    assert rows["r1"].has_children and not rows["r3"].has_children
    assert rows["r2"].is_flow

    await tree.toggle(tree.find("r1"))
    await tree.toggle(tree.find("c1"))
    assert _shape(tree) == [("r1", 0), ("c1", 1), ("g1", 2), ("c2", 1), ("r2", 0), ("r3", 0)]


async def test_flow_toggle_opens_instead_of_expanding(store, schema, scheduler):
    opened = []
    tree = await _tree(store, schema, scheduler, on_open_flow=opened.append)
    await tree.toggle(tree.find("r2"))
    assert [t.id for t in opened] == ["r2"]
    assert _shape(tree) == [("r1", 0), ("r2", 0), ("r3", 0)]


async def test_display_values(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    r1, r3 = tree.find("r1"), tree.find("r3")
    col = schema.require
    assert tree.display_value(r3, col("tags")) == "a, b, c +2"
    assert tree.display_value(r1, col("tags")) == "-"
    assert tree.display_value(r3, col("estimate")) == "3"
    assert tree.display_value(r1, col("estimate")) == "0"
    assert tree.display_value(r1, col("billable")) == "No"
    assert tree.display_value(r1, col("status")) == "Pending"
    assert tree.display_value(r1, col("assigneeId")) == "-"
    dated = r1.with_values({"dueAt": "2026-03-04T10:30:00Z", "startDate": "2026-03-01"})
    assert tree.display_value(dated, col("dueAt")) == "2026-03-04 10:30"
    assert tree.display_value(dated, col("startDate")) == "2026-03-01"
    assert tree.lookup_color(col("status"), "pending") == "#6B7280"


async def test_reference_shows_resolved_label(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.save_field("r1", "assigneeId", "u1")
    assert tree.display_value(tree.find("r1"), schema.require("assigneeId")) == "Sarah Chen"


async def test_cell_commit_saves_and_refreshes_parent(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    session = tree.cell(tree.find("c1"), "title")
    assert await session.activate()
    assert tree.editing_sessions() == [session]
    session.set_text("Child renamed")
    assert await session.commit()
    assert store.calls_of("update_one") == [("c1", {"title": "Child renamed"})]
    assert store.calls_of("list_children") == ["r1", "r1"]
    assert tree.find("c1").title == "Child renamed"
    assert tree.cell(tree.find("c1"), "title") is session


async def test_sort_by_requires_sortable_field(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    assert not await tree.sort_by("summary")
    assert await tree.sort_by("title")
    assert tree.root_ids() == ["r2", "r1", "r3"]
    assert await tree.sort_by("title")
    assert tree.sort_order == "desc"
    assert tree.root_ids() == ["r3", "r1", "r2"]
    assert store.calls_of("list_roots")[-1] == ("title", "desc", "", {})


async def test_reload_prunes_selection_to_rendered_rows(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    tree.selection.toggle_one("r2")
    tree.selection.toggle_one("c2")
    await tree.set_search("one")
    assert tree.root_ids() == ["r1"]
    assert tree.selection.selected == {"c2"}


async def test_batch_update_and_delete_reach_the_projection(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    tree.selection.toggle_one("c1")
    assert await tree.selection.archive() == 1
    assert tree.find("c1").status == "archived"

    tree.selection.toggle_one("c2")

    async def accept(count):
        return True

    assert await tree.selection.delete(accept) == 1
    assert _shape(tree) == [("r1", 0), ("c1", 1), ("r2", 0), ("r3", 0)]


async def test_reparenting_moves_the_row_exactly_once(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    await tree.toggle(tree.find("r3"))
    session = tree.cell(tree.find("c2"), "parentId")
    assert await session.activate()
    await session.pending_search
    assert await session.select_option("r3")
    ids = [row.task_id for row in tree.rows()]
    assert ids.count("c2") == 1
    assert _shape(tree) == [("r1", 0), ("c1", 1), ("r2", 0), ("r3", 0), ("c2", 1)]
    assert tree.find("c2").parent_id == "r3"


async def test_reparenting_to_root_lists_task_among_roots(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    await tree.save_field("c2", "parentId", None)
    assert tree.root_ids() == ["r1", "c2", "r2", "r3"]
    assert [row.task_id for row in tree.rows()].count("c2") == 1
    assert _shape(tree)[:2] == [("r1", 0), ("c1", 1)]


async def test_reparent_under_own_descendant_is_rejected(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    session = tree.cell(tree.find("r1"), "parentId")
    await session.activate()
    await session.pending_search
    assert not await session.select_option("c1")
    assert session.phase is EditPhase.EDITING
    assert "cannot be moved" in session.error
    assert tree.root_ids() == ["r1", "r2", "r3"]


async def test_collapsing_drops_idle_cell_sessions(store, schema, scheduler):
    tree = await _tree(store, schema, scheduler)
    await tree.toggle(tree.find("r1"))
    idle = tree.cell(tree.find("c1"), "title")
    editing = tree.cell(tree.find("c2"), "title")
    await editing.activate()
    await tree.toggle(tree.find("r1"))
    assert tree.editing_sessions() == [editing]
    await tree.toggle(tree.find("r1"))
    assert tree.cell(tree.find("c1"), "title") is not idle
    assert tree.cell(tree.find("c2"), "title") is editing


async def test_filters_reload_roots_and_show_chips(store, schema, scheduler):
    await store.update_one("r3", {"status": "waiting", "urgency": "high"})
    tree = await _tree(store, schema, scheduler)
    await tree.toggle_filter("status", "waiting")
    assert tree.root_ids() == ["r3"]
    assert store.calls_of("list_roots")[-1] == ("", "asc", "", {"status": ["waiting"]})
    await tree.toggle_filter("status", "pending")
    assert tree.root_ids() == ["r1", "r2", "r3"]
    await tree.toggle_filter("status", "pending")
    await tree.set_hitl_pending(True)
    assert tree.active_filters() == [("Status", "Waiting"), ("HITL", "Awaiting Review")]
    await tree.toggle_filter("status", "waiting")
    assert tree.filters == {"hitlPending": True}
    assert tree.root_ids() == ["r3"]
    await tree.set_search("root")
    await tree.clear_filters()
    assert tree.active_filters() == []
    assert tree.root_ids() == ["r1", "r2", "r3"]


async def test_column_visibility_is_remembered(store, schema, scheduler, preferences):
    tree = await _tree(store, schema, scheduler, preferences=preferences)
    default = [d.field_path for d in tree.visible_columns()]
    assert "summary" not in default
    assert not tree.toggle_column("title")
    assert not tree.toggle_column("nope")
    assert tree.toggle_column("summary")
    assert tree.toggle_column("tags")
    shown = [d.field_path for d in tree.visible_columns()]
    assert shown == [p for p in default if p != "tags"] + ["summary"]
    assert preferences.columns == shown
    assert dict((d.field_path, on) for d, on in tree.column_choices())["summary"]

    reopened = await _tree(store, schema, scheduler, preferences=preferences)
    assert [d.field_path for d in reopened.visible_columns()] == shown


async def test_stale_column_list_falls_back_to_defaults(store, schema, scheduler, preferences):
    preferences.columns = ["gone"]
    tree = await _tree(store, schema, scheduler, preferences=preferences)
    assert tree.visible_columns() == schema.visible()
