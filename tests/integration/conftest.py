"""
Fixtures for tests that drive the application through its HTTP and
WebSocket endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from parley.api.deps import reset_dependencies
from parley.infrastructure.local.database import get_engine


@pytest.fixture
def client(settings):
    reset_dependencies()
    get_engine.cache_clear()

    from main import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_dependencies()
    get_engine.cache_clear()
