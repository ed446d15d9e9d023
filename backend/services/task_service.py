"""
task_service.py - Task repository
CRUD for tasks and their scalar fields. Category links are delegated to
CategoryLinkService inside the same transaction, so a task write and its
link changes are applied together or not at all.
"""

from dataclasses import dataclass, fields
from datetime import datetime, timezone

from sqlalchemy import desc

from database import StoreGateway
from errors import ValidationError, NotFoundError
from models.task import Task, TaskStatus, TaskPriority
from services.category_link_service import CategoryLinkService


class _Unset:
    """Marker for a field that was not supplied at all (as opposed to supplied as None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()


@dataclass
class TaskPatch:
    """
    Partial update of a task. Each field is in one of three states:
    UNSET (leave as is), None (clear it; only description and due_date
    accept this) or a value (overwrite).
    """
    title: object = UNSET
    description: object = UNSET
    status: object = UNSET
    priority: object = UNSET
    due_date: object = UNSET
    category_ids: object = UNSET

    @classmethod
    def from_dict(cls, data: dict) -> "TaskPatch":
        """Keys present in data are supplied; absent keys stay UNSET. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def supplied(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def is_empty(self) -> bool:
        return not self.supplied()


# ------------------------------------------------------------------
# Field validation. Runs before any statement is issued.

def _clean_title(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("title", "Title is required")
    return value.strip()


def _clean_description(value):
    if value is not None and not isinstance(value, str):
        raise ValidationError("description", "Description must be text")
    return value


def _clean_enum(enum_cls, field: str, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(field, f"Invalid {field} {value!r}; expected one of {allowed}")


def _clean_due_date(value):
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("due_date", f"Invalid due_date {value!r}")
    if not isinstance(value, datetime):
        raise ValidationError("due_date", "due_date must be a timestamp")
    # stored as naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TaskService:
    def __init__(self, gateway: StoreGateway):
        self.gateway = gateway

    def create(self, data: dict) -> Task:
        """Create a task from a data dict. Missing status/priority default to TODO/MEDIUM."""
        title = _clean_title(data.get("title"))
        description = _clean_description(data.get("description"))
        status = _clean_enum(TaskStatus, "status", data["status"]) if data.get("status") is not None else TaskStatus.TODO
        priority = (
            _clean_enum(TaskPriority, "priority", data["priority"])
            if data.get("priority") is not None else TaskPriority.MEDIUM
        )
        due_date = _clean_due_date(data.get("due_date"))
        category_ids = data.get("category_ids")
        if category_ids is not None:
            category_ids = CategoryLinkService.normalize_ids(category_ids)

        with self.gateway.transaction() as db:
            task = Task(
                title=title,
                description=description,
                status=status,
                priority=priority,
                due_date=due_date,
            )
            db.add(task)
            db.flush()
            if category_ids:
                CategoryLinkService.replace_links(db, task.id, category_ids)
            task_id = task.id

        return self.get(task_id)

    def get(self, task_id: int) -> Task:
        """The task with its category ids (link insertion order) attached."""
        with self.gateway.session() as db:
            task = db.query(Task).filter_by(id=task_id).first()
            if task is None:
                raise NotFoundError("task", task_id)
            self._attach_categories(db, [task])
            return task

    def list_all(self) -> list[Task]:
        """Every task, newest first."""
        with self.gateway.session() as db:
            tasks = db.query(Task).order_by(desc(Task.created_at), desc(Task.id)).all()
            self._attach_categories(db, tasks)
            return tasks

    def update(self, task_id: int, patch) -> Task:
        """
        Apply a partial update. Only supplied fields change. When category_ids
        is supplied the link set is replaced in the same transaction as the
        scalar fields. Returns the task as read back after commit.
        """
        if isinstance(patch, dict):
            patch = TaskPatch.from_dict(patch)
        changes = self._validate_patch(patch)

        if patch.is_empty():
            return self.get(task_id)

        with self.gateway.transaction() as db:
            # row lock: concurrent writers of one task apply one after the other
            task = db.query(Task).filter_by(id=task_id).with_for_update().first()
            if task is None:
                raise NotFoundError("task", task_id)

            for key, value in changes.items():
                setattr(task, key, value)
            # a links-only change still counts as a modification
            task.updated_at = datetime.now(timezone.utc)

            if patch.category_ids is not UNSET:
                CategoryLinkService.replace_links(db, task_id, patch.category_ids)
            db.flush()

        return self.get(task_id)

    def delete(self, task_id: int) -> None:
        """Remove the task's links and then the task row, in one transaction."""
        with self.gateway.transaction() as db:
            exists = db.query(Task.id).filter_by(id=task_id).with_for_update().first()
            if exists is None:
                raise NotFoundError("task", task_id)
            CategoryLinkService.delete_links_for_task(db, task_id)
            db.query(Task).filter_by(id=task_id).delete(synchronize_session=False)

    # ------------------------------------------------------------------
    @staticmethod
    def _validate_patch(patch: TaskPatch) -> dict:
        """Scalar column changes keyed by attribute name. Raises ValidationError."""
        changes = {}
        supplied = patch.supplied()
        if "title" in supplied:
            changes["title"] = _clean_title(supplied["title"])
        if "description" in supplied:
            changes["description"] = _clean_description(supplied["description"])
        if "status" in supplied:
            if supplied["status"] is None:
                raise ValidationError("status", "Status cannot be null")
            changes["status"] = _clean_enum(TaskStatus, "status", supplied["status"])
        if "priority" in supplied:
            if supplied["priority"] is None:
                raise ValidationError("priority", "Priority cannot be null")
            changes["priority"] = _clean_enum(TaskPriority, "priority", supplied["priority"])
        if "due_date" in supplied:
            changes["due_date"] = _clean_due_date(supplied["due_date"])
        if "category_ids" in supplied:
            CategoryLinkService.normalize_ids(supplied["category_ids"])
        return changes

    @staticmethod
    def _attach_categories(db, tasks: list[Task]):
        by_task = CategoryLinkService.categories_by_task(db, [t.id for t in tasks])
        for t in tasks:
            cats = by_task.get(t.id, [])
            t.categories = tuple(cats)
            t.category_ids = tuple(c["id"] for c in cats)
