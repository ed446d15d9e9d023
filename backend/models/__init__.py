# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from models.task import Task, TaskStatus, TaskPriority
from models.category import Category
from models.task_category_link import TaskCategoryLink

__all__ = [
    "Task",
    "TaskStatus",
    "TaskPriority",
    "Category",
    "TaskCategoryLink",
]
