import os
import sys
import pytest

# Ensure the backend root (containing the `mafiastats` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from mafiastats import create_app, db, socketio

PASSWORD = 'password'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:3000']
    PAYMENT_WEBHOOK_SECRET = 'whsec_test'
    PREMIUM_PLANS = {2000: 4, 3600: 8}
    PREMIUM_NIGHT_PRICE = 500
    RECENT_GAMES_LIMIT = 5
    TOP_CLUBS_LIMIT = 6
    PLAYER_RECENT_GAMES_LIMIT = 10


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import mafiastats.models  # noqa: F401
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
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_user(flask_app):
    from mafiastats.models import User
    counter = {'n': 0}

    def _make(name=None, role='user', club=None, **fields):
        counter['n'] += 1
        n = counter['n']
        user = User(
            email=fields.pop('email', f'user{n}@example.com'),
            name=name or f'Player{n}',
            role=role,
            club=club,
            **fields,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_club(flask_app):
    from mafiastats.models import Club

    def _make(name, federation=None, **fields):
        club = Club(name=name, federation=federation, **fields)
        db.session.add(club)
        db.session.commit()
        return club
    return _make


@pytest.fixture()
def make_federation(flask_app):
    from mafiastats.models import Federation

    def _make(name, **fields):
        federation = Federation(name=name, **fields)
        db.session.add(federation)
        db.session.commit()
        return federation
    return _make


@pytest.fixture()
def make_game(flask_app):
    """Insert a finished game; ``seats`` is a list of (player, role) in slot order."""
    from mafiastats.models import Game, GamePlayer

    def _make(seats, result='civilians_win', referee=None, **fields):
        game = Game(result=result, referee=referee, **fields)
        for slot, (player, role) in enumerate(seats, start=1):
            game.participants.append(GamePlayer(player=player, role=role, slot_number=slot))
        db.session.add(game)
        db.session.commit()
        return game
    return _make


@pytest.fixture()
def login(client):
    def _login(user):
        res = client.post('/login', json={'email': user.email, 'password': PASSWORD})
        assert res.status_code == 200
        return res
    return _login
