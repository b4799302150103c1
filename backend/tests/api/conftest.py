"""API test fixtures — FastAPI app wired to the test database and a recording bus.

Invariants:
    - app.state carries the test db_manager and bus; the lifespan never runs
      (ASGITransport does not send lifespan events)
    - app.state restored after each test
"""

import pytest
from httpx import ASGITransport, AsyncClient

from bookswap.main import app

from tests.fakes import RecordingPublisher


@pytest.fixture
def bus():
    return RecordingPublisher()


@pytest.fixture
async def client(db_manager, bus):
    """FastAPI test client with app.state pointed at test doubles."""
    app.state.db_manager = db_manager
    app.state.bus = bus

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    del app.state.db_manager
    del app.state.bus
