"""Pytest configuration and shared fixtures."""

import itertools

import pytest
import pytest_asyncio

from nrepl_link import MockTransport, Notification, ReplClient


@pytest.fixture
def id_factory():
    """Deterministic request ids: req-1, req-2, ..."""
    counter = itertools.count(1)
    return lambda: f"req-{next(counter)}"


@pytest.fixture
def transport():
    return MockTransport()


@pytest_asyncio.fixture
async def client(transport, id_factory):
    client = ReplClient(transport, id_factory=id_factory)
    yield client
    await client.disconnect()


@pytest.fixture
def received(client):
    """Every notification published by ``client``, in order."""
    notifications: list[Notification] = []
    client.notifications.subscribe_all(notifications.append)
    return notifications


@pytest_asyncio.fixture
async def active_client(client, transport):
    """A client whose session "S1" is already established."""
    await client.connect()
    transport.feed({"new-session": "S1"})
    transport.clear()
    yield client
    await client.disconnect()
