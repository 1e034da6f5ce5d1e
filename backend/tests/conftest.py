import os
import random
import sys

import pytest

# Ensure the backend root (containing the `partyhub` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

os.environ.setdefault("SOCKETIO_ASYNC_MODE", "threading")

from partyhub.config import Config
from partyhub.game.commands import Command
from partyhub.game.service import GameService
from partyhub.game.timers import TimerService


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def tick(self, ms: int) -> None:
        self.now += ms


def room_codes(first="AB12CD"):
    yield first
    n = 0
    while True:
        n += 1
        yield f"RM{n:04d}"


class Table:
    """Drives a GameService the way a connected client would."""

    def __init__(self, service: GameService) -> None:
        self.service = service
        self.published = []
        service.publish = lambda room, result: self.published.append(result)

    def create(self, variant, host_id="p1"):
        room, result = self.service.create_room(variant, host_id, host_id.upper(), sid=f"sid-{host_id}")
        assert result.ok, result.error
        return room

    def join(self, room, player_id, sid=None):
        result = self.send(room, player_id, "join_room", nickname=player_id.upper(), sid=sid)
        assert result.ok, result.error
        return result

    def send(self, room, player_id, name, sid=None, **data):
        command = Command(name, player_id=player_id, data=data, sid=sid or f"sid-{player_id}")
        _, result = self.service.dispatch(room.variant, room.code, command)
        return result

    def tick(self, room, seconds=1):
        self.service.timers.advance(room.code, seconds)

    def published_events(self, name):
        return [e for r in self.published for e in r.events if e.event == name]


def make_settings(**overrides):
    return type("TestSettings", (Config,), overrides)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_service(clock):
    def _make(seed=1234, **overrides):
        return GameService(
            settings=make_settings(**overrides),
            timers=TimerService(),
            rng=random.Random(seed),
            code_factory=room_codes().__next__,
            clock=clock,
        )

    return _make


@pytest.fixture()
def service(make_service):
    return make_service()


@pytest.fixture()
def table(service):
    return Table(service)


@pytest.fixture()
def make_table(make_service):
    def _make(seed=1234, **overrides):
        return Table(make_service(seed=seed, **overrides))

    return _make


@pytest.fixture()
def flask_app(service):
    from partyhub.server import create_app

    application, sio = create_app(service=service)
    application.config["TESTING"] = True
    return application, sio


@pytest.fixture()
def client(flask_app):
    application, _ = flask_app
    return application.test_client()


@pytest.fixture()
def sio_client(flask_app):
    application, sio = flask_app
    opened = []

    def _connect(namespace):
        test_client = sio.test_client(
            application,
            flask_test_client=application.test_client(),
            namespace=namespace,
        )
        opened.append((test_client, namespace))
        return test_client

    yield _connect
    for test_client, namespace in opened:
        if test_client.is_connected(namespace):
            test_client.disconnect(namespace=namespace)
