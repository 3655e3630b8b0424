"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient

from threadline.adapters import reset_adapters
from threadline.adapters.slack import reset_clients as reset_slack_clients
from threadline.app import app
from threadline.llm import clear_analysis_cache
from threadline.metrics import reset_metrics
from threadline.notion import reset_client as reset_notion_client
from threadline.reliability import reset_rate_limiter
from threadline.repository import reset_repository
from threadline.store import InMemoryStore, reset_store, set_store


@pytest.fixture(autouse=True)
def _isolated_state():
    """Give every test a fresh in-memory store and empty singletons."""
    set_store(InMemoryStore())
    yield
    reset_store()
    reset_rate_limiter()
    reset_metrics()
    reset_repository()
    reset_adapters()
    reset_slack_clients()
    reset_notion_client()
    clear_analysis_cache()


@pytest.fixture(scope="session")
def client() -> TestClient:
    """Create a TestClient for the FastAPI app."""
    return TestClient(app)
