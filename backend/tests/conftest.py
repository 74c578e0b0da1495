import os
import sys
import random
import pytest

# Ensure the backend root (containing the `jackpot` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from jackpot import create_app, db, socketio
from jackpot.errors import InsufficientBalance, PersistenceFailure, UnknownUser
from jackpot.services.ledger import LedgerRecord
from jackpot.services.registry import ConnectionRegistry
from jackpot.services.round import RoundCoordinator


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ADMIN_TOKEN = 'test-token'
    STARTING_BALANCE = 10
    ROUND_DURATION_SEC = 30
    ROUND_TICK_SEC = 0
    LIVENESS_INTERVAL_SEC = 30


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import jackpot.models  # noqa: F401
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


@pytest.fixture()
def make_sio_client(flask_app):
    clients = []

    def _make():
        c = socketio.test_client(flask_app, namespace='/ws')
        clients.append(c)
        return c

    yield _make
    for c in clients:
        if c.is_connected('/ws'):
            c.disconnect(namespace='/ws')


@pytest.fixture()
def received():
    """Return the room messages (payload dicts) a test client has received
    since the last call."""

    def _received(test_client):
        out = []
        for pkt in test_client.get_received('/ws'):
            if pkt['name'] != 'message':
                continue
            args = pkt['args']
            out.append(args[0] if isinstance(args, list) else args)
        return out

    return _received


@pytest.fixture()
def make_user(flask_app):
    from jackpot.room import get_room

    def _make(balance=10):
        user, _created = get_room().ledger.create_if_absent()
        user.balance = balance
        db.session.add(user)
        db.session.commit()
        return user.id

    return _make


# ---- Unit test doubles ----

class InMemoryLedger:
    def __init__(self, balances=None):
        self.balances = dict(balances or {})
        self.fail_persist = False
        self.persist_calls = 0
        self.discard_calls = 0

    def get(self, user_id):
        if user_id not in self.balances:
            return None
        return LedgerRecord(user_id=user_id, balance=self.balances[user_id], secret=f"secret-{user_id}")

    def adjust(self, user_id, delta, floor=None):
        if user_id not in self.balances:
            raise UnknownUser()
        new_balance = self.balances[user_id] + delta
        if floor is not None and new_balance < floor:
            raise InsufficientBalance()
        self.balances[user_id] = new_balance
        return new_balance

    def persist(self):
        self.persist_calls += 1
        if self.fail_persist:
            raise PersistenceFailure('disk full')

    def discard(self):
        self.discard_calls += 1


class RecordingChannel:
    def __init__(self):
        self.broadcasts = []
        self.sent = []

    def broadcast(self, message):
        self.broadcasts.append(message.to_dict())

    def send(self, conn_id, message):
        self.sent.append((conn_id, message.to_dict()))

    def types(self):
        return [m['type'] for m in self.broadcasts]


class FixedRandom:
    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


@pytest.fixture()
def ledger():
    return InMemoryLedger({'alice': 100, 'bob': 100, 'carol': 100})


@pytest.fixture()
def registry():
    reg = ConnectionRegistry()
    for conn_id, user_id in (('c-alice', 'alice'), ('c-bob', 'bob'), ('c-carol', 'carol')):
        reg.register(conn_id)
        reg.bind(conn_id, user_id)
    return reg


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def make_coordinator(ledger, registry, channel):
    def _make(rng=None, **kwargs):
        return RoundCoordinator(ledger, registry, channel, rng=rng or random.Random(7), **kwargs)

    return _make


@pytest.fixture()
def fixed_random():
    return FixedRandom
