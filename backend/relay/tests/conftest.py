import pytest
from starlette.testclient import TestClient

from relay.server.app import create_app
from relay.server.settings import RelayServerSettings
from relay.session.handler import ConnectionHandler
from relay.session.heartbeat import LivenessMonitor
from relay.session.models import RoomKey
from relay.session.registry import RoomRegistry
from relay.tests.helpers import LOBBY
from relay.tests.mocks import MockConnection


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def liveness():
    return LivenessMonitor(interval=0)


@pytest.fixture
def make_handler(registry, liveness):
    """Build a handler bound to a fresh MockConnection in the given room."""

    def _make(key: RoomKey = LOBBY, *, max_players: int = 50, connection_id: str | None = None):
        connection = MockConnection(connection_id)
        liveness.register(connection)
        handler = ConnectionHandler(
            connection,
            key,
            registry,
            max_players=max_players,
            send_timeout=0.5,
            liveness=liveness,
        )
        return handler, connection

    return _make


@pytest.fixture
def settings():
    # Heartbeat disabled so the background sweep never races test assertions.
    return RelayServerSettings(max_players=3, heartbeat_interval=0, port=8080)


@pytest.fixture
def app(settings):
    return create_app(settings=settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
