"""
category_link_service.py - Task <-> Category association manager
Maintains the task_category_link table. Every method runs on the caller's
session so that link changes commit or roll back together with the caller's
own statements; nothing here opens or commits a transaction.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import ValidationError, ReferentialIntegrityError
from models.category import Category
from models.task_category_link import TaskCategoryLink

# SQLSTATE for foreign_key_violation (PostgreSQL)
FOREIGN_KEY_VIOLATION = "23503"


def is_foreign_key_violation(error: IntegrityError) -> bool:
    """True when the driver reports a foreign key failure rather than, say, a duplicate key."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == FOREIGN_KEY_VIOLATION
    return "foreign key" in str(orig).lower()


class CategoryLinkService:
    @staticmethod
    def normalize_ids(category_ids) -> list[int]:
        """Collapse duplicates, keeping first-seen order."""
        if category_ids is None or isinstance(category_ids, (str, bytes)):
            raise ValidationError("category_ids", "category_ids must be a list of category ids")
        try:
            ids = [int(c) for c in category_ids]
        except (TypeError, ValueError):
            raise ValidationError("category_ids", "category_ids must be a list of category ids")
        return list(dict.fromkeys(ids))

    @staticmethod
    def replace_links(db: Session, task_id: int, category_ids) -> list[int]:
        """
        Replace the full link set of a task: delete every existing link, then
        insert one per category id. The task must already exist in this
        session. An unknown category id raises ReferentialIntegrityError
        before anything is deleted; the caller's transaction rollback covers
        the rest.
        """
        wanted = CategoryLinkService.normalize_ids(category_ids)

        if wanted:
            found = {row[0] for row in db.query(Category.id).filter(Category.id.in_(wanted)).all()}
            missing = [c for c in wanted if c not in found]
            if missing:
                raise ReferentialIntegrityError(
                    f"Category not found: {', '.join(str(c) for c in missing)}"
                )

        db.query(TaskCategoryLink).filter_by(task_id=task_id).delete(synchronize_session=False)
        db.add_all([
            TaskCategoryLink(task_id=task_id, category_id=cid, position=i)
            for i, cid in enumerate(wanted)
        ])
        try:
            db.flush()
        except IntegrityError as e:
            # a category vanished between the existence check and the insert;
            # anything else is left to the gateway as a store failure
            if is_foreign_key_violation(e):
                raise ReferentialIntegrityError("Category no longer exists") from e
            raise
        return wanted

    @staticmethod
    def delete_links_for_task(db: Session, task_id: int) -> int:
        return db.query(TaskCategoryLink).filter_by(task_id=task_id).delete(synchronize_session=False)

    @staticmethod
    def category_ids_for(db: Session, task_id: int) -> list[int]:
        """Category ids of one task in link insertion order."""
        rows = (
            db.query(TaskCategoryLink.category_id)
            .filter_by(task_id=task_id)
            .order_by(TaskCategoryLink.position)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def categories_by_task(db: Session, task_ids: list[int]) -> dict[int, list[dict]]:
        """{task_id: [{id, name, color}, ...]} for many tasks in one query."""
        result: dict[int, list[dict]] = {tid: [] for tid in task_ids}
        if not task_ids:
            return result
        rows = (
            db.query(TaskCategoryLink.task_id, Category.id, Category.name, Category.color)
            .join(Category, Category.id == TaskCategoryLink.category_id)
            .filter(TaskCategoryLink.task_id.in_(task_ids))
            .order_by(TaskCategoryLink.task_id, TaskCategoryLink.position)
            .all()
        )
        for task_id, cid, name, color in rows:
            result[task_id].append({"id": cid, "name": name, "color": color})
        return result

    @staticmethod
    def count_links(db: Session, category_id: int) -> int:
        return db.query(TaskCategoryLink).filter_by(category_id=category_id).count()

    @staticmethod
    def can_delete_category(db: Session, category_id: int) -> bool:
        """
        True iff no link references the category. Only meaningful inside the
        transaction that performs the delete; the RESTRICT foreign key on
        task_category_link.category_id re-checks it when the delete executes.
        """
        return CategoryLinkService.count_links(db, category_id) == 0
