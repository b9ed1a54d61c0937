from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from mafiastats.routes import main
    flask_app.register_blueprint(main)

    from mafiastats.api.games import games
    from mafiastats.api.players import players
    from mafiastats.api.clubs import clubs
    from mafiastats.api.federations import federations
    from mafiastats.api.ratings import ratings
    from mafiastats.api.payments import payments
    from mafiastats.api.admin import admin
    from mafiastats.api.stats import stats
    flask_app.register_blueprint(games, url_prefix='/api/games')
    flask_app.register_blueprint(players, url_prefix='/api/players')
    flask_app.register_blueprint(clubs, url_prefix='/api/clubs')
    flask_app.register_blueprint(federations, url_prefix='/api/federations')
    flask_app.register_blueprint(ratings, url_prefix='/api/ratings')
    flask_app.register_blueprint(payments, url_prefix='/api/payments')
    flask_app.register_blueprint(admin, url_prefix='/api/admin')
    flask_app.register_blueprint(stats, url_prefix='/api/stats')

    _register_error_handlers(flask_app)

    # Dashboard feed; binds handlers to the shared socketio instance
    from mafiastats.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from mafiastats.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            _seed()
            print('Database has been reset and seeded!')

    @click.command('grant-admin')
    @click.argument('email')
    def grant_admin_command(email):
        """Gives the user with EMAIL the admin role."""
        with flask_app.app_context():
            user = User.query.filter_by(email=email.lower()).first()
            if not user:
                raise click.ClickException(f'No user with email {email}')
            user.role = 'admin'
            db.session.commit()
            print(f'{email} is now an admin.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(grant_admin_command)

    return flask_app


def _register_error_handlers(flask_app):
    from mafiastats.errors import APIError

    @flask_app.errorhandler(APIError)
    def handle_api_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description}), exc.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[error] unhandled: {exc}")
        return jsonify({'error': 'Internal server error'}), 500


def _seed():
    from mafiastats.models import Club, Federation, User

    federation = Federation(name='Mafia Federation', country='Russia', city='Moscow')
    club_a = Club(name='Red Night', city='Moscow', country='Russia', federation=federation)
    club_b = Club(name='Black Card', city='Kazan', country='Russia', federation=federation)
    db.session.add_all([federation, club_a, club_b])

    admin_user = User(email='admin@example.com', name='Admin', role='admin', is_tournament_judge=True)
    admin_user.set_password('password')
    premium_user = User(email='premium@example.com', name='Premium', role='premium', premium_nights=30)
    premium_user.set_password('password')
    db.session.add_all([admin_user, premium_user])

    for i in range(1, 11):
        player = User(
            email=f'player{i}@example.com',
            name=f'Player{i}',
            nickname=f'P{i}',
            club=club_a if i % 2 else club_b,
        )
        player.set_password('password')
        db.session.add(player)

    db.session.commit()
