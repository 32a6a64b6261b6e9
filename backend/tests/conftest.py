import os
import random
import sys
import pytest

# Ensure the backend root (containing the `imposter` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from imposter import create_app, db, socketio
from imposter.services.game import GameService, SessionRegistry, SessionRules


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    LOG_LEVEL = 'DEBUG'
    MAX_PLAYERS = 10
    MIN_PLAYERS_STANDARD = 4
    MIN_PLAYERS_CUSTOM = 3
    MIN_PLAYERS_AUTO_ROUND = 4
    LOBBY_LEAVE_GRACE_SEC = 30
    ABANDONED_SESSION_SEC = 900
    ROUND_HISTORY_LIMIT = 10
    CUSTOM_TEXT_MAX_LEN = 100


class ScriptedRandom(random.Random):
    """Random whose first ``random()`` calls return queued values."""

    def __init__(self, values=(), seed=7):
        super().__init__(seed)
        self.queued = list(values)

    def random(self):
        if self.queued:
            return self.queued.pop(0)
        return super().random()

    # Defining getrandbits here keeps Random.__init_subclass__ from routing
    # choice/shuffle/randrange through random(), which would drain the queue
    def getrandbits(self, k):
        return super().getrandbits(k)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingAccounts:
    def __init__(self, fail=False):
        self.recorded = []
        self.fail = fail

    def record_round_result(self, user_id, was_imposter, won, vote_correct=None):
        if self.fail:
            raise RuntimeError('database is down')
        self.recorded.append((user_id, was_imposter, won, vote_correct))


class RecordingNotifier:
    def __init__(self):
        self.room = []
        self.direct = []

    def to_room(self, session, event, payload):
        self.room.append((event, payload))

    def to_player(self, player, event, payload):
        self.direct.append((player.name, event, payload))

    def room_events(self):
        return [event for event, _ in self.room]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def registry(clock):
    return SessionRegistry(rules=SessionRules(), rng=random.Random(42), clock=clock)


@pytest.fixture()
def accounts():
    return RecordingAccounts()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def service(registry, accounts, notifier):
    return GameService(registry, account_store=accounts, notifier=notifier)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import imposter.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
