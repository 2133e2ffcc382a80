import pytest
import pytest_asyncio

from hawkbit_client.services.ddi import Client
from tests.mocks.fake_hawkbit import BASE_URL, FakeHawkbit


@pytest.fixture
def server():
    """Fake hawkBit server with the default tenant."""
    return FakeHawkbit()


@pytest.fixture
def target(server):
    return server.add_target("Target1")


@pytest_asyncio.fixture
async def http_client(server):
    """httpx client routed in-process to the fake server."""
    client = server.http_client()
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def ddi_client(server, target, http_client):
    """DDI client for ``target`` sharing the in-process http client."""
    return Client(BASE_URL, server.tenant, target.name, target.key, http_client=http_client)
