from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, BeforeValidator

from models.task import TaskStatus, TaskPriority
from routes.deps import get_task_service
from services.task_service import TaskService, TaskPatch

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])

# Legacy clients send the board column as a number. Translated here and nowhere else.
STATUS_CODES = {0: TaskStatus.TODO, 1: TaskStatus.IN_PROGRESS, 2: TaskStatus.DONE}


def _status_from_code(value):
    if isinstance(value, int) and not isinstance(value, bool):
        if value not in STATUS_CODES:
            raise ValueError(f"unknown status code {value}")
        return STATUS_CODES[value]
    return value


StatusField = Annotated[Optional[TaskStatus], BeforeValidator(_status_from_code)]


class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: StatusField = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    category_ids: Optional[list[int]] = None

class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: StatusField = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    category_ids: Optional[list[int]] = None

@router.get("")
def list_tasks(service: TaskService = Depends(get_task_service)):
    tasks = service.list_all()
    return {"success": True, "data": [t.to_dict() for t in tasks]}


@router.post("")
def create_task(task_data: TaskCreate, service: TaskService = Depends(get_task_service)):
    task = service.create(task_data.model_dump(exclude_unset=True))
    return {"success": True, "data": task.to_dict()}


@router.get("/{task_id}")
def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    task = service.get(task_id)
    return {"success": True, "data": task.to_dict()}


@router.put("/{task_id}")
def update_task(task_id: int, task_data: TaskUpdate, service: TaskService = Depends(get_task_service)):
    # exclude_unset keeps "absent" apart from an explicit null
    patch = TaskPatch.from_dict(task_data.model_dump(exclude_unset=True))
    task = service.update(task_id, patch)
    return {"success": True, "data": task.to_dict()}


@router.delete("/{task_id}")
def delete_task(task_id: int, service: TaskService = Depends(get_task_service)):
    service.delete(task_id)
    return {"success": True}
