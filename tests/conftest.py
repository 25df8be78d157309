"""
Pytest configuration and shared fixtures for CRM tests.

Test Categories:
- unit: Fast tests with no I/O beyond a temporary data directory
- integration: Tests that go through the HTTP API or the MCP bridge

Run categories:
- pytest -m unit              # Fast unit tests only
- pytest -m "not integration" # Skip integration tests
- pytest                      # All tests
"""
import pytest

from api.services.crm_models import Contact, Interaction
from api.services.crm_store import InMemoryStore, JsonFileStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: API and MCP bridge tests")


@pytest.fixture
def store(tmp_path):
    """A JSON file store in a temporary data directory."""
    return JsonFileStore(tmp_path / "data")


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def make_contact():
    """Factory for Contact records."""
    def _make(name: str, **kwargs) -> Contact:
        return Contact(name=name, **kwargs)
    return _make


@pytest.fixture
def make_interaction():
    """Factory for Interaction records."""
    def _make(contact_ids: list[str], date: str = "2026-02-20", summary: str = "Coffee catch-up", **kwargs) -> Interaction:
        return Interaction(contact_ids=list(contact_ids), date=date, summary=summary, **kwargs)
    return _make


@pytest.fixture
def seed():
    """Write contacts and interactions straight into a store."""
    def _seed(target_store, contacts=(), interactions=()):
        target_store.write_contacts(list(contacts))
        target_store.write_interactions(list(interactions))
    return _seed
