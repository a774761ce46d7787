from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.core.position import Position
from src.protocol.http.app import create_app


@pytest.fixture
def start() -> Position:
    return Position.startpos()


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())
