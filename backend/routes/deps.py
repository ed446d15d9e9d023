from fastapi import Depends, Request

from database import StoreGateway
from services.task_service import TaskService
from services.category_service import CategoryService


def get_gateway(request: Request) -> StoreGateway:
    """The gateway the app was built with (see main.create_app)."""
    return request.app.state.gateway


def get_task_service(gateway: StoreGateway = Depends(get_gateway)) -> TaskService:
    return TaskService(gateway)


def get_category_service(gateway: StoreGateway = Depends(get_gateway)) -> CategoryService:
    return CategoryService(gateway)
