"""Shared fixtures: an in-memory Cosmos client and a StoreContext bound to it."""

import pytest

from fakes import FakeCosmosClient
from smartoffice.config import get_settings
from smartoffice.data.connection import ConnectionProvider
from smartoffice.data.context import StoreContext


@pytest.fixture
def fake_client():
    return FakeCosmosClient()


@pytest.fixture
def provider(fake_client, monkeypatch):
    provider = ConnectionProvider("https://localhost:8081/", "fake-key", client=fake_client)
    # Reconnecting after close() hands back the same fake.
    monkeypatch.setattr(provider, "_create_client", lambda: fake_client)
    return provider


@pytest.fixture
def context(provider):
    return StoreContext(provider, database_name="catalog-db")


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    for name in ("COSMOS__ENDPOINT", "COSMOS__KEY", "COSMOS__KEY_PATH", "COSMOS__DATABASE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
