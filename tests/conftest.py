"""Pytest configuration and shared fixtures."""

import json
import os
from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger

# Set test environment
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-REDACTED")
os.environ.setdefault("TASKFORGE_RETRY_DELAY", "0")
os.environ.setdefault("TASKFORGE_LOG_LEVEL", "DEBUG")


@pytest.fixture
def mock_settings() -> Generator:
    """Clear the settings cache around a test."""
    from taskforge.core.config import clear_settings_cache

    clear_settings_cache()

    yield

    clear_settings_cache()


@pytest.fixture
def settings():
    """Settings with a primary key, no research key and no backoff."""
    from taskforge.core.config import Settings

    return Settings(
        anthropic_api_key="sk-ant-REDACTED",
        perplexity_api_key=None,
        taskforge_retry_delay=0,
        taskforge_bilingual=False,
        _env_file=None,
    )


@pytest.fixture
def log_messages() -> Generator[list[tuple[str, str]], None, None]:
    """Capture loguru records as ``(level, message)`` pairs."""
    messages: list[tuple[str, str]] = []
    handler_id = logger.add(
        lambda message: messages.append(
            (message.record["level"].name, message.record["message"])
        ),
        level="DEBUG",
    )

    yield messages

    logger.remove(handler_id)


@pytest.fixture
def gateway() -> MagicMock:
    """Provide a provider gateway stub; set ``side_effect`` per test."""
    gateway = MagicMock()
    gateway.send_primary = AsyncMock()
    gateway.send_research = AsyncMock()
    return gateway


@pytest.fixture
def sample_prd() -> str:
    """Provide a sample product requirements document."""
    return """# Todo Service PRD

Build a REST API for a todo application with the following features:
- User authentication (register, login, logout)
- Todo CRUD operations
- Due dates and reminders
- PostgreSQL persistence
"""


@pytest.fixture
def sample_task_items() -> list[dict]:
    """Provide task objects as a model would return them."""
    return [
        {
            "id": 1,
            "title": "Setup project repository",
            "description": "Initialize the service skeleton",
            "status": "pending",
            "dependencies": [],
            "priority": "high",
            "details": "Create the package layout and CI config",
            "testStrategy": "CI runs on an empty test suite",
        },
        {
            "id": 2,
            "title": "Implement user authentication",
            "description": "Register, login and logout endpoints",
            "status": "pending",
            "dependencies": [1],
            "priority": "high",
            "details": "Hash passwords, issue JWTs",
            "testStrategy": "Endpoint tests for each flow",
        },
        {
            "id": 3,
            "title": "Implement todo CRUD",
            "description": "Create, read, update and delete todos",
            "status": "pending",
            "dependencies": [1, 2],
            "priority": "medium",
            "details": "Owner-scoped queries",
            "testStrategy": "Endpoint tests with two users",
        },
    ]


@pytest.fixture
def decomposition_reply(sample_task_items) -> str:
    """Provide a decomposition reply wrapped in prose and a code fence."""
    payload = {
        "tasks": sample_task_items,
        "metadata": {
            "projectName": "Todo Service",
            "totalTasks": 3,
            "sourceDocument": "prd.txt",
            "generatedAt": "2026-01-15",
        },
    }
    return f"Here is the breakdown:\n```json\n{json.dumps(payload, indent=2)}\n```\nGood luck!"


@pytest.fixture
def subtask_reply() -> str:
    """Provide a subtask reply whose ids need renumbering."""
    items = [
        {
            "id": 7,
            "title": "Create user table",
            "description": "Schema and migration",
            "dependencies": [],
            "details": "users(id, email, password_hash)",
            "testStrategy": "Migration applies cleanly",
        },
        {
            "id": 8,
            "title": "Add password hashing",
            "description": "bcrypt helper",
            "dependencies": ["7"],
            "details": "Wrap passlib",
            "testStrategy": "Hash and verify round trip",
        },
        {
            "id": 9,
            "title": "Expose login endpoint",
            "description": "POST /login",
            "details": "Return a signed JWT",
            "testStrategy": "Valid and invalid credentials",
        },
    ]
    return f"Sure! Here are the subtasks:\n{json.dumps(items)}\nLet me know if you need more."


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
