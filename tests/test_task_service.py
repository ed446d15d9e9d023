"""
Tests for the task repository: defaults, validation, partial updates,
atomic link replacement and cascading delete.
"""
import threading
from datetime import datetime, timezone

import pytest

from errors import ValidationError, NotFoundError, ReferentialIntegrityError
from models.task import TaskStatus, TaskPriority
from models.task_category_link import TaskCategoryLink
from services.task_service import TaskPatch, UNSET


def _link_rows(gateway, task_id):
    with gateway.session() as db:
        return db.query(TaskCategoryLink).filter_by(task_id=task_id).count()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Create / Get
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_applies_defaults(task_service):
    task = task_service.create({"title": "Write spec"})
    assert task.id is not None
    assert task.status == TaskStatus.TODO
    assert task.priority == TaskPriority.MEDIUM
    assert task.description is None
    assert task.due_date is None
    assert task.category_ids == ()
    assert task.created_at is not None
    assert task.updated_at is not None


@pytest.mark.parametrize("title", [None, "", "   ", "\t\n"])
def test_create_rejects_blank_title(task_service, title):
    data = {"title": title} if title is not None else {}
    with pytest.raises(ValidationError) as exc:
        task_service.create(data)
    assert exc.value.field == "title"
    assert task_service.list_all() == []


def test_create_rejects_unknown_status(task_service):
    with pytest.raises(ValidationError) as exc:
        task_service.create({"title": "X", "status": "BLOCKED"})
    assert exc.value.field == "status"
    assert task_service.list_all() == []


def test_create_with_categories_keeps_first_seen_order(task_service, category_service):
    a = category_service.create({"name": "Work", "color": "blue"})
    b = category_service.create({"name": "Home", "color": "green"})

    task = task_service.create({"title": "Tagged", "category_ids": [b.id, a.id, b.id]})

    assert task.category_ids == (b.id, a.id)
    assert [c["name"] for c in task.categories] == ["Home", "Work"]


def test_create_with_unknown_category_inserts_nothing(task_service, category_service):
    a = category_service.create({"name": "Work", "color": "blue"})
    with pytest.raises(ReferentialIntegrityError):
        task_service.create({"title": "Orphan", "category_ids": [a.id, 999]})
    assert task_service.list_all() == []


def test_create_normalizes_aware_due_date_to_utc(task_service):
    due = datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc)
    task = task_service.create({"title": "Due", "due_date": due})
    assert task.due_date == datetime(2026, 3, 1, 18, 30)


def test_get_missing_task(task_service):
    with pytest.raises(NotFoundError) as exc:
        task_service.get(404)
    assert exc.value.entity == "task"
    assert exc.value.status_code == 404


def test_list_all_newest_first(task_service, category_service):
    cat = category_service.create({"name": "Work", "color": "blue"})
    first = task_service.create({"title": "First"})
    second = task_service.create({"title": "Second", "category_ids": [cat.id]})

    tasks = task_service.list_all()
    assert [t.id for t in tasks] == [second.id, first.id]
    assert tasks[0].category_ids == (cat.id,)
    assert tasks[1].category_ids == ()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Partial update
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_patch_tracks_supplied_fields():
    patch = TaskPatch.from_dict({"status": "DONE", "due_date": None, "bogus": 1})
    assert patch.supplied() == {"status": "DONE", "due_date": None}
    assert patch.title is UNSET
    assert not UNSET
    assert TaskPatch().is_empty()


def test_update_changes_only_supplied_fields(task_service):
    task = task_service.create({
        "title": "X",
        "description": "keep me",
        "status": "TODO",
        "priority": "HIGH",
        "due_date": datetime(2026, 1, 2, 9, 0),
    })

    updated = task_service.update(task.id, {"status": "DONE"})

    assert updated.status == TaskStatus.DONE
    assert updated.title == "X"
    assert updated.priority == TaskPriority.HIGH
    assert updated.description == "keep me"
    assert updated.due_date == datetime(2026, 1, 2, 9, 0)
    assert updated.created_at == task.created_at


def test_update_explicit_null_clears_nullable_fields(task_service):
    task = task_service.create({
        "title": "X",
        "description": "old",
        "due_date": datetime(2026, 1, 2, 9, 0),
    })

    updated = task_service.update(task.id, TaskPatch(due_date=None))
    assert updated.due_date is None
    assert updated.description == "old"

    updated = task_service.update(task.id, TaskPatch(description=None))
    assert updated.description is None


@pytest.mark.parametrize("patch, field", [
    (TaskPatch(title=""), "title"),
    (TaskPatch(title=None), "title"),
    (TaskPatch(status=None), "status"),
    (TaskPatch(status="ARCHIVED"), "status"),
    (TaskPatch(priority=None), "priority"),
    (TaskPatch(priority="URGENT"), "priority"),
    (TaskPatch(due_date="not a date"), "due_date"),
    (TaskPatch(category_ids=None), "category_ids"),
    (TaskPatch(category_ids=["a"]), "category_ids"),
])
def test_update_rejects_invalid_values(task_service, patch, field):
    task = task_service.create({"title": "X", "priority": "LOW"})
    with pytest.raises(ValidationError) as exc:
        task_service.update(task.id, patch)
    assert exc.value.field == field

    unchanged = task_service.get(task.id)
    assert unchanged.title == "X"
    assert unchanged.status == TaskStatus.TODO
    assert unchanged.priority == TaskPriority.LOW


def test_update_accepts_lowercase_enum_values(task_service):
    task = task_service.create({"title": "X"})
    updated = task_service.update(task.id, {"status": "in_progress", "priority": "high"})
    assert updated.status == TaskStatus.IN_PROGRESS
    assert updated.priority == TaskPriority.HIGH


def test_update_missing_task(task_service):
    with pytest.raises(NotFoundError):
        task_service.update(7, {"status": "DONE"})
    with pytest.raises(NotFoundError):
        task_service.update(7, TaskPatch())


def test_update_replaces_category_set(task_service, category_service):
    a = category_service.create({"name": "A", "color": "red"})
    b = category_service.create({"name": "B", "color": "red"})
    c = category_service.create({"name": "C", "color": "red"})
    task = task_service.create({"title": "X", "category_ids": [a.id, b.id]})

    updated = task_service.update(task.id, {"category_ids": [c.id, a.id]})
    assert updated.category_ids == (c.id, a.id)

    untagged = task_service.update(task.id, {"category_ids": []})
    assert untagged.category_ids == ()
    assert _link_rows(task_service.gateway, task.id) == 0


def test_update_with_bad_category_rolls_back_scalar_fields(task_service, category_service):
    a = category_service.create({"name": "A", "color": "red"})
    task = task_service.create({"title": "Before", "status": "TODO", "category_ids": [a.id]})

    with pytest.raises(ReferentialIntegrityError):
        task_service.update(task.id, {"title": "After", "status": "DONE", "category_ids": [a.id, 999]})

    after = task_service.get(task.id)
    assert after.title == "Before"
    assert after.status == TaskStatus.TODO
    assert after.category_ids == (a.id,)


def test_update_scalar_only_leaves_links_alone(task_service, category_service):
    a = category_service.create({"name": "A", "color": "red"})
    task = task_service.create({"title": "X", "category_ids": [a.id]})

    updated = task_service.update(task.id, {"title": "Y"})
    assert updated.category_ids == (a.id,)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Delete
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_delete_removes_links_and_task(task_service, category_service):
    cats = [category_service.create({"name": n, "color": "gray"}) for n in ("A", "B", "C")]
    task = task_service.create({"title": "Doomed", "category_ids": [c.id for c in cats]})
    assert _link_rows(task_service.gateway, task.id) == 3

    task_service.delete(task.id)

    with pytest.raises(NotFoundError):
        task_service.get(task.id)
    assert _link_rows(task_service.gateway, task.id) == 0
    # categories themselves survive
    assert len(category_service.list_all()) == 3


def test_delete_missing_task(task_service):
    with pytest.raises(NotFoundError):
        task_service.delete(5)


def test_title_is_stored_stripped(task_service):
    task = task_service.create({"title": "  Write spec \n"})
    assert task.title == "Write spec"

    updated = task_service.update(task.id, {"title": "\tReview PR  "})
    assert updated.title == "Review PR"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Concurrent writers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_concurrent_identical_category_updates_both_succeed(task_service, category_service):
    a = category_service.create({"name": "A", "color": "red"})
    b = category_service.create({"name": "B", "color": "red"})
    task = task_service.create({"title": "Shared"})

    errors = []
    start = threading.Barrier(2)

    def writer():
        start.wait()
        try:
            for _ in range(5):
                task_service.update(task.id, {"category_ids": [a.id, b.id]})
        except Exception as e:  # collected and asserted below
            errors.append(e)

    threads = [threading.Thread(target=writer) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert task_service.get(task.id).category_ids == (a.id, b.id)
    assert _link_rows(task_service.gateway, task.id) == 2
