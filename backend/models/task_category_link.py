from sqlalchemy import Column, Integer, ForeignKey
from database import Base


class TaskCategoryLink(Base):
    """Task is tagged with category. Identity is (task_id, category_id)."""
    __tablename__ = "task_category_link"

    task_id = Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), primary_key=True)
    # RESTRICT: the store itself refuses to drop a category that is still linked
    category_id = Column(Integer, ForeignKey("category.id", ondelete="RESTRICT"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)  # insertion order within the task
