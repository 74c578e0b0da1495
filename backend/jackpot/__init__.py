from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import os
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'migrations')


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db, directory=MIGRATIONS_DIR)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from jackpot.main import main
    flask_app.register_blueprint(main)

    # One room per app: ledger, registry, broadcast channel, round, liveness
    from jackpot.room import build_room
    build_room(flask_app)

    from jackpot.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from jackpot.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return User.query.filter_by(id=user_id).first()

    @click.command('db-reset')
    @click.option('--seed', default=3, show_default=True, help='Number of demo users to create.')
    def db_reset_command(seed):
        """Drops, recreates, and seeds the database."""
        from jackpot.room import get_room
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            ledger = get_room().ledger
            for _ in range(seed):
                user, _created = ledger.create_if_absent()
                print(f"{user.id} secret={user.secret} balance={user.balance}")

            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
