from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def build_room_service(flask_app):
    """Create the app's RoomService; background timers are off under TESTING."""
    from satrapy.services.rooms import RoomService
    from satrapy.services.rooms.broadcast import SocketIOSink
    from satrapy.services.rooms.scheduler import TaskScheduler

    logger = flask_app.logger
    if flask_app.config.get('TESTING'):
        scheduler = TaskScheduler(logger=logger)
    else:
        scheduler = TaskScheduler(spawn=socketio.start_background_task, sleep=socketio.sleep, logger=logger)
    sink = SocketIOSink(socketio, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'), logger=logger)
    return RoomService.from_config(flask_app.config, sink, scheduler=scheduler, logger=logger)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One registry per app so test apps never share rooms
    flask_app.extensions['satrapy'] = build_room_service(flask_app)

    from satrapy.main import main
    flask_app.register_blueprint(main, url_prefix='/api/auth')

    from satrapy.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from satrapy.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'))

    # Flask-Login user loader
    from satrapy.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('init-db')
    def init_db_command():
        """Drops, recreates, and seeds the credential table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            for u in ['testuser1', 'testuser2', 'testuser3']:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(init_db_command)

    return flask_app
