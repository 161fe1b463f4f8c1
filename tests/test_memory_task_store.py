import pytest

from core import BatchMutationError, SaveFailure, TransientFetchFailure, ValidationRejection
from infrastructure.memory_task_store import MemoryTaskStore


SEED = """
users:
  - {id: u1, displayName: Sarah Chen, email: sarah@example.com}
tasks:
  - _id: p
    title: Parent
    assigneeId: u1
    children:
      - {title: First}
      - {title: Second, status: completed}
  - {_id: q, title: Other}
"""


@pytest.fixture
def seeded(tmp_path):
    path = tmp_path / "tasks.yaml"
    path.write_text(SEED, encoding="utf-8")
    return MemoryTaskStore.from_yaml(path)


async def test_yaml_seed_builds_tree(seeded):
    roots = await seeded.list_roots()
    assert [t.id for t in roots] == ["p", "q"]
    parent = roots[0]
    assert parent.child_count == 2
    assert parent.resolved["assigneeId"]["displayName"] == "Sarah Chen"
    children = await seeded.list_children("p")
    assert [c.title for c in children] == ["First", "Second"]
    assert all(c.parent_id == "p" for c in children)
    assert children[0].resolved["parentId"]["title"] == "Parent"


def test_unreadable_seed_is_transient(tmp_path):
    with pytest.raises(TransientFetchFailure):
        MemoryTaskStore.from_yaml(tmp_path / "missing.yaml")
    bad = tmp_path / "list.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(TransientFetchFailure):
        MemoryTaskStore.from_yaml(bad)


async def test_children_of_unknown_parent_fail(seeded):
    with pytest.raises(TransientFetchFailure):
        await seeded.list_children("nope")


async def test_update_validates(seeded):
    with pytest.raises(ValidationRejection) as info:
        await seeded.update_one("q", {"title": "  "})
    assert info.value.field_path == "title"
    with pytest.raises(ValidationRejection):
        await seeded.update_one("q", {"status": "sideways"})
    with pytest.raises(SaveFailure):
        await seeded.update_one("missing", {"title": "x"})
    updated = await seeded.update_one("q", {"status": "archived", "estimate": 4})
    assert updated.status == "archived"
    assert updated.value("estimate") == 4


async def test_batch_is_all_or_nothing(seeded):
    with pytest.raises(BatchMutationError):
        await seeded.update_many(["p", "ghost"], {"urgency": "high"})
    assert seeded.snapshot("p").urgency == "normal"
    await seeded.update_many(["p", "q"], {"urgency": "high"})
    assert seeded.snapshot("q").urgency == "high"


async def test_delete_cascades(seeded):
    children = await seeded.list_children("p")
    await seeded.delete_many(["p"])
    assert "p" not in seeded
    assert all(c.id not in seeded for c in children)
    assert [t.id for t in await seeded.list_roots()] == ["q"]


async def test_create_under_parent(seeded):
    created = await seeded.create_one({"title": "Third", "parentId": "p"})
    assert created.parent_id == "p"
    assert seeded.snapshot("p").child_count == 3
    with pytest.raises(ValidationRejection):
        await seeded.create_one({"title": ""})
    with pytest.raises(ValidationRejection):
        await seeded.create_one({"title": "Orphan", "parentId": "ghost"})


async def test_search_sort_and_lookups(seeded):
    assert [t.title for t in await seeded.search("sec")] == ["Second"]
    assert [t.id for t in await seeded.list_roots("title", "desc")] == ["p", "q"]
    assert [t.id for t in await seeded.list_roots(search="oth")] == ["q"]
    lookups = await seeded.lookups()
    assert lookups["urgency"][0].code == "low"
    assert [u.id for u in await seeded.users()] == ["u1"]
    fields = await seeded.fields_for("tasks")
    assert fields[0].field_path == "title"


async def test_root_filters(seeded):
    await seeded.update_one("q", {"status": "waiting", "urgency": "urgent"})
    assert [t.id for t in await seeded.list_roots(filters={"status": ["waiting", "completed"]})] == ["q"]
    assert [t.id for t in await seeded.list_roots(filters={"urgency": ["normal"]})] == ["p"]
    assert [t.id for t in await seeded.list_roots(filters={"hitlPending": True})] == ["q"]
    assert [t.id for t in await seeded.list_roots(filters={"status": [], "hitlPending": False})] == ["p", "q"]
    assert await seeded.list_roots(search="par", filters={"hitlPending": True}) == []


async def test_reparent_checks_target(seeded):
    first = (await seeded.list_children("p"))[0]
    with pytest.raises(ValidationRejection) as info:
        await seeded.update_one("p", {"parentId": first.id})
    assert info.value.field_path == "parentId"
    with pytest.raises(ValidationRejection):
        await seeded.update_one("p", {"parentId": "p"})
    with pytest.raises(ValidationRejection):
        await seeded.update_one("q", {"parentId": "ghost"})
    moved = await seeded.update_one(first.id, {"parentId": "q"})
    assert moved.parent_id == "q"
    assert seeded.snapshot("p").child_count == 1
    assert [t.id for t in await seeded.list_roots()] == ["p", "q"]
