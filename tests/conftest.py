"""
Shared pytest fixtures and configuration for all tests.

Components are wired through build_app_context with an in-memory store, a
controllable clock and cheap argon2 parameters so that secret hashing stays
fast.
"""

import pytest

from oauth_core.config import reset_settings
from oauth_core.core.context import build_app_context
from oauth_core.storage.memory import InMemoryOAuthStore
from tests.helpers import REDIRECT_URI, FakeClock, make_settings


@pytest.fixture(autouse=True)
def _reset_settings():
    """Never leak the settings singleton between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def store():
    return InMemoryOAuthStore()


@pytest.fixture
def app_context(settings, store, clock):
    return build_app_context(settings, store=store, clock=clock)


@pytest.fixture
def pkce(app_context):
    return app_context.pkce


@pytest.fixture
def clients(app_context):
    return app_context.clients


@pytest.fixture
def tokens(app_context):
    return app_context.tokens


@pytest.fixture
def codes(app_context):
    return app_context.codes


@pytest.fixture
def orchestrator(app_context):
    return app_context.orchestrator


@pytest.fixture
async def confidential_client(clients):
    """Confidential client with read/write scopes; returns (client, secret)."""
    return await clients.create_client(
        name="Test Confidential App",
        redirect_uris=[REDIRECT_URI],
        allowed_scopes=["read", "write"],
        owner_id="owner-1",
    )


@pytest.fixture
async def public_client(clients):
    """Public client with read/write scopes."""
    client, _ = await clients.create_client(
        name="Test Public App",
        redirect_uris=[REDIRECT_URI],
        allowed_scopes=["read", "write"],
        is_confidential=False,
        owner_id="owner-1",
    )
    return client
