from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from routes.deps import get_category_service
from services.category_service import CategoryService

router = APIRouter(prefix="/api/v1/categories", tags=["Categories"])


class CategoryCreate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


@router.get("")
def list_categories(service: CategoryService = Depends(get_category_service)):
    return {"success": True, "data": [c.to_dict() for c in service.list_all()]}


@router.post("")
def create_category(category_data: CategoryCreate, service: CategoryService = Depends(get_category_service)):
    category = service.create(category_data.model_dump(exclude_unset=True))
    return {"success": True, "data": category.to_dict()}


@router.get("/{category_id}")
def get_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    return {"success": True, "data": service.get(category_id).to_dict()}


@router.put("/{category_id}")
def update_category(
    category_id: int,
    category_data: CategoryUpdate,
    service: CategoryService = Depends(get_category_service),
):
    category = service.update(category_id, category_data.model_dump(exclude_unset=True))
    return {"success": True, "data": category.to_dict()}


@router.delete("/{category_id}")
def delete_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    service.delete(category_id)
    return {"success": True}
