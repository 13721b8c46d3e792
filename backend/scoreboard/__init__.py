from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8081",
    "http://127.0.0.1:8081",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

PERSISTENCE_EXTENSION = 'scoreboard_persistence'


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One write queue per app: every session shares it
    from scoreboard.services.session import PersistenceCoordinator, SqlRecordStore
    flask_app.extensions[PERSISTENCE_EXTENSION] = PersistenceCoordinator(
        SqlRecordStore(flask_app),
        inline=bool(flask_app.config.get('PERSIST_INLINE')),
        logger=flask_app.logger,
    )

    from scoreboard.routes import main
    flask_app.register_blueprint(main)

    from scoreboard.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api')

    from scoreboard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('store-reset')
    def store_reset_command():
        """Drops and recreates the record store."""
        import scoreboard.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Record store has been reset!')

    flask_app.cli.add_command(store_reset_command)

    with flask_app.app_context():
        import scoreboard.models  # noqa: F401
        db.create_all()

    return flask_app
