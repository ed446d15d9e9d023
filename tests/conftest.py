"""Shared test fixtures for the task board tests."""

import sys
from pathlib import Path

import pytest

# The backend is a flat layout of top-level modules; make it importable
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "backend"))

from fastapi.testclient import TestClient

from database import StoreGateway
from services.task_service import TaskService
from services.category_service import CategoryService


@pytest.fixture
def gateway(tmp_path):
    """A real gateway on a throwaway SQLite file (foreign keys + WAL on)."""
    gw = StoreGateway(f"sqlite:///{tmp_path / 'board.db'}", pool_size=5, max_overflow=5)
    gw.init_schema()
    yield gw
    gw.dispose()


@pytest.fixture
def task_service(gateway):
    return TaskService(gateway)


@pytest.fixture
def category_service(gateway):
    return CategoryService(gateway)


@pytest.fixture
def app(gateway):
    from main import create_app
    return create_app(gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
