"""
FILE: tests/conftest.py
Shared fixtures for service tests.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.bootstrap import assemble_runtime
from src.api.main import app
from src.infrastructure.risk_service import InMemoryRiskService
from tests.factories import FakeChainAdapter, service_settings


def _has_marker(item: pytest.Item, name: str) -> bool:
    return item.get_closest_marker(name) is not None


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if _has_marker(item, "unit") or _has_marker(item, "e2e"):
            continue

        path = Path(str(item.fspath)).as_posix().lower()
        if "/tests/e2e/" in path:
            item.add_marker(pytest.mark.e2e)
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture
def chain():
    return FakeChainAdapter()


@pytest.fixture
def risk_service():
    return InMemoryRiskService()


@pytest.fixture
def settings():
    return service_settings()


@pytest.fixture
def runtime(settings, chain, risk_service):
    return assemble_runtime(settings, chain=chain, risk_client=risk_service)


@pytest.fixture
def installed_runtime(runtime):
    """Install the runtime on the app without running the startup lifespan."""
    previous = app.state.runtime
    app.state.runtime = runtime
    yield runtime
    app.state.runtime = previous


@pytest.fixture
def client(installed_runtime):
    return TestClient(app)
