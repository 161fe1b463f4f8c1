import pytest

from core import FieldDescriptor, FieldSchema, FieldType, SchemaError, Task


def _title(**overrides):
    data = {"fieldPath": "title", "fieldType": "text", "isRequired": True}
    data.update(overrides)
    return data


def test_descriptors_sorted_by_display_order():
    schema = FieldSchema.from_dicts(
        "tasks",
        [
            {"fieldPath": "status", "fieldType": "select", "displayOrder": 5},
            _title(displayOrder=1),
            {"fieldPath": "tags", "fieldType": "tags", "displayOrder": 3},
        ],
    )
    assert [d.field_path for d in schema] == ["title", "tags", "status"]


def test_missing_title_rejected():
    with pytest.raises(SchemaError):
        FieldSchema.from_dicts("tasks", [{"fieldPath": "summary", "fieldType": "text"}])


def test_title_must_be_required_and_editable():
    with pytest.raises(SchemaError):
        FieldSchema.from_dicts("tasks", [_title(isRequired=False)])
    with pytest.raises(SchemaError):
        FieldSchema.from_dicts("tasks", [_title(isEditable=False)])


def test_duplicate_paths_rejected():
    with pytest.raises(SchemaError):
        FieldSchema.from_dicts("tasks", [_title(), {"fieldPath": "title", "fieldType": "text"}])


def test_unknown_field_type_rejected():
    with pytest.raises(SchemaError):
        FieldDescriptor.from_dict({"fieldPath": "x", "fieldType": "geo"})


def test_descriptor_from_camel_case():
    desc = FieldDescriptor.from_dict(
        {
            "fieldPath": "assigneeId",
            "displayName": "Assignee",
            "fieldType": "reference",
            "referenceCollection": "users",
            "isSortable": True,
            "defaultVisible": False,
            "options": [{"code": "a", "displayName": "A"}, {"value": "b", "label": "B"}],
        }
    )
    assert desc.field_type is FieldType.REFERENCE
    assert desc.is_fixed_choice_reference
    assert desc.is_sortable and not desc.default_visible
    assert [(o.value, o.label) for o in desc.options] == [("a", "A"), ("b", "B")]


def test_visible_honours_column_list(schema):
    assert [d.field_path for d in schema.visible(["status", "title", "nope"])] == ["status", "title"]
    default = [d.field_path for d in schema.visible()]
    assert "summary" not in default and default[0] == "title"


def test_task_from_dict_splits_core_and_extra_fields():
    task = Task.from_dict(
        {"_id": "t1", "title": "T", "extraPrompt": "p", "estimate": 2, "childCount": 3, "tags": None}
    )
    assert task.extra_prompt == "p"
    assert task.value("estimate") == 2
    assert task.tags == []
    assert task.has_child_hint()
    updated = task.with_values({"title": "U", "estimate": 5})
    assert (updated.title, updated.value("estimate")) == ("U", 5)
    assert task.title == "T"


def test_task_from_dict_counts_placeholder_children():
    task = Task.from_dict({"_id": "t1", "title": "T", "children": [{}, {}, {"_id": "c", "title": "C"}]})
    assert [c.id for c in task.children] == ["c"]
    assert task.child_count == 3
    assert task.has_child_hint()
