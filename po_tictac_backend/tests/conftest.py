"""
Shared pytest fixtures for backend tests.

Game-state fixtures are function-scoped so every test gets its own
sessions and statistics.
"""

import random
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

from po_tictac.config import Settings
from po_tictac.core import BoardState
from po_tictac.main import app, get_service
from po_tictac.service import GameService
from po_tictac.stats import StatisticsAggregator


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def aggregator() -> StatisticsAggregator:
    return StatisticsAggregator()


@pytest.fixture
def service(aggregator, settings) -> GameService:
    return GameService(aggregator=aggregator, settings=settings, rng=random.Random(7))


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client) -> Callable[[str], Dict[str, str]]:
    """Return a factory issuing bearer headers for a player name."""

    def _headers(name: str) -> Dict[str, str]:
        resp = client.post("/token", json={"playerName": name})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['accessToken']}"}

    return _headers


@pytest.fixture
def empty_board() -> BoardState:
    return BoardState.new()
