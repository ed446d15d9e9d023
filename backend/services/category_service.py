"""
category_service.py - Category repository
Names are unique across all categories; colors are opaque tokens and are
only checked for presence. Deletion is refused while any task links to the
category.
"""

from sqlalchemy.exc import IntegrityError

from database import StoreGateway
from errors import ValidationError, NotFoundError, ReferentialIntegrityError
from models.category import Category
from services.category_link_service import CategoryLinkService


def _required_text(field: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field.capitalize()} is required")
    return value.strip()


class CategoryService:
    def __init__(self, gateway: StoreGateway):
        self.gateway = gateway

    def create(self, data: dict) -> Category:
        name = _required_text("name", data.get("name"))
        color = _required_text("color", data.get("color"))

        with self.gateway.transaction() as db:
            if db.query(Category.id).filter_by(name=name).first():
                raise ValidationError("name", f"Category '{name}' already exists")
            category = Category(name=name, color=color)
            db.add(category)
            try:
                db.flush()
            except IntegrityError as e:
                # lost a race against another insert of the same name
                raise ValidationError("name", f"Category '{name}' already exists") from e
        return category

    def get(self, category_id: int) -> Category:
        with self.gateway.session() as db:
            category = db.query(Category).filter_by(id=category_id).first()
            if category is None:
                raise NotFoundError("category", category_id)
            return category

    def list_all(self) -> list[Category]:
        with self.gateway.session() as db:
            return db.query(Category).order_by(Category.name.asc()).all()

    def update(self, category_id: int, data: dict) -> Category:
        """Partial update: only the keys present in data are changed."""
        changes = {}
        if "name" in data:
            changes["name"] = _required_text("name", data["name"])
        if "color" in data:
            changes["color"] = _required_text("color", data["color"])

        with self.gateway.transaction() as db:
            category = db.query(Category).filter_by(id=category_id).first()
            if category is None:
                raise NotFoundError("category", category_id)
            if "name" in changes:
                clash = (
                    db.query(Category.id)
                    .filter(Category.name == changes["name"], Category.id != category_id)
                    .first()
                )
                if clash:
                    raise ValidationError("name", f"Category '{changes['name']}' already exists")
            for key, value in changes.items():
                setattr(category, key, value)
            try:
                db.flush()
            except IntegrityError as e:
                raise ValidationError("name", f"Category '{changes.get('name')}' already exists") from e
        return category

    def delete(self, category_id: int) -> None:
        """
        Delete a category that no task references. The reference check and the
        delete share one transaction, and the RESTRICT foreign key rejects the
        delete if a link slipped in after the check.
        """
        with self.gateway.transaction() as db:
            if db.query(Category.id).filter_by(id=category_id).first() is None:
                raise NotFoundError("category", category_id)
            if not CategoryLinkService.can_delete_category(db, category_id):
                raise ReferentialIntegrityError("Cannot delete category with associated tasks")
            try:
                db.query(Category).filter_by(id=category_id).delete(synchronize_session=False)
            except IntegrityError as e:
                raise ReferentialIntegrityError("Cannot delete category with associated tasks") from e
