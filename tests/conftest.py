"""
This file contains shared fixtures and configuration for the test suite.

Pytest will automatically discover and use the fixtures defined in this file.

The application reads its settings at import time, so the test database URL
and log directory are exported before anything from ``app`` is imported.
Tests run against a throwaway SQLite file whose tables are recreated before
every test.
"""

import asyncio
import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

_TEST_DIR = Path(tempfile.mkdtemp(prefix="task_api_tests_"))
os.environ["TASK_API_DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{(_TEST_DIR / 'test.sqlite3').as_posix()}"
)
os.environ["LOG_DIR"] = str(_TEST_DIR / "logs")
os.environ.pop("TASK_API_SCHEMA", None)

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db import reset_db  # noqa: E402

FUTURE_DEADLINE = "2030-01-01T12:00:00Z"


@pytest.fixture(autouse=True)
def reset_database() -> None:
    """
    Drop and recreate all tables so every test starts from an empty store.
    """
    asyncio.run(reset_db())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """
    Create a new application instance for the test session.
    """
    from main import create_app

    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """
    Fixture to get a test client for making API requests.
    The TestClient handles the application's lifespan events (startup/shutdown).
    """
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(client: TestClient) -> Callable[..., dict]:
    """Factory posting a user and returning its document."""
    counter = {"n": 0}

    def _create(name: str | None = None, email: str | None = None, **extra) -> dict:
        counter["n"] += 1
        payload = {
            "name": name or f"User {counter['n']}",
            "email": email or f"user{counter['n']}@example.com",
            **extra,
        }
        response = client.post("/api/users", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def create_task(client: TestClient) -> Callable[..., dict]:
    """Factory posting a task and returning its document."""
    counter = {"n": 0}

    def _create(name: str | None = None, **extra) -> dict:
        counter["n"] += 1
        payload = {
            "name": name or f"Task {counter['n']}",
            "deadline": FUTURE_DEADLINE,
            **extra,
        }
        response = client.post("/api/tasks", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def get_user(client: TestClient) -> Callable[[str], dict]:
    def _get(user_id: str) -> dict:
        response = client.get(f"/api/users/{user_id}")
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _get


@pytest.fixture
def get_task(client: TestClient) -> Callable[[str], dict]:
    def _get(task_id: str) -> dict:
        response = client.get(f"/api/tasks/{task_id}")
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _get
