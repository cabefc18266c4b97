import itertools
import os
import sys
import pytest

# Ensure the project root (containing the `sketchchain` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from flask import g, request_started

from sketchchain import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = '*'
    ROOMS_PAGE_SIZE = 20
    DEFAULT_GAME_MODE = 'classic'
    DEFAULT_CAPACITY = 8
    DEFAULT_TOTAL_ROUNDS = 3
    MAX_ROOM_CAPACITY = 16
    MAX_TOTAL_ROUNDS = 10
    MIN_PLAYERS = 2
    MAX_WORD_LENGTH = 100
    MAX_DRAWING_BYTES = 1024
    DRAWING_DURATION_SEC = 0
    GUESS_DURATION_SEC = 0


def _forget_cached_user(sender, **extra):
    # Test requests reuse the fixture's app context and its `g`
    g.pop('_login_user', None)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    request_started.connect(_forget_cached_user, application)
    with application.app_context():
        # Ensure models are imported so tables are created
        import sketchchain.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login_as(flask_app):
    """Register a user and hand back a test client logged in as them."""
    def _login(username):
        test_client = flask_app.test_client()
        res = test_client.post('/api/auth/register', json={'username': username, 'password': 'password'})
        assert res.status_code == 201
        test_client.user = res.get_json()['user']
        return test_client
    return _login


@pytest.fixture()
def make_user(flask_app):
    from sketchchain.models import User

    def _make(username):
        user = User(username=username)
        user.set_password('password')
        db.session.add(user)
        db.session.commit()
        return user.id
    return _make


@pytest.fixture()
def game_factory(make_user):
    """Seat ``n`` fresh players in a started room; returns (room_id, ids by seat)."""
    from sketchchain.services import rooms as rooms_svc
    counter = itertools.count(1)

    def _build(n=4, total_rounds=1):
        batch = next(counter)
        ids = [make_user(f'g{batch}p{i}') for i in range(1, n + 1)]
        room = rooms_svc.create_room(ids[0], title=f'Game {batch}', capacity=8, total_rounds=total_rounds)
        room_id = room.id
        for uid in ids[1:]:
            rooms_svc.join_room(room_id, uid)
        for uid in ids:
            rooms_svc.set_ready(room_id, uid)
        rooms_svc.begin_game(room_id, ids[0])
        return room_id, ids
    return _build


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
