from flask import Flask, g, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8081",
    "http://127.0.0.1:8081",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from momentum.main import main
    flask_app.register_blueprint(main)

    from momentum.api.tasks import tasks
    flask_app.register_blueprint(tasks, url_prefix='/api/tasks')

    from momentum.api.routines import routines
    flask_app.register_blueprint(routines, url_prefix='/api/routines')

    from momentum.api.links import links
    flask_app.register_blueprint(links, url_prefix='/api/household')

    # Register Socket.IO event handlers
    from momentum.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Identity comes from the upstream gateway, see momentum.auth
    from momentum import auth  # noqa: F401

    @flask_app.before_request
    def reset_request_identity():
        # Flask-Login caches the member on g, which an outer app context outlives
        g.pop('_login_user', None)

    from momentum.errors import MomentumError, ConflictError

    @flask_app.errorhandler(MomentumError)
    def handle_operational_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(StaleDataError)
    def handle_stale_write(exc):
        db.session.rollback()
        flask_app.logger.warning(f"[stale-write] {exc}")
        conflict = ConflictError('The record was changed by another request; reload and retry.')
        return jsonify(conflict.to_dict()), conflict.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc):
        db.session.rollback()
        flask_app.logger.exception("[storage-error] unhandled database failure")
        return jsonify({'error': 'Something went wrong on the server.', 'code': 'STORAGE_ERROR'}), 500

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from momentum.services.seed import seed_demo_households
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            summary = seed_demo_households()
            print(f"Database has been reset and seeded! {summary}")

    @click.command('drain-sync-outbox')
    def drain_sync_outbox_command():
        """Applies pending cross-household point syncs."""
        from momentum.services.sync import drain_outbox
        with flask_app.app_context():
            results = drain_outbox()
            print(f"Processed {len(results)} sync intents")

    @click.command('expire-link-proposals')
    def expire_link_proposals_command():
        """Marks sharing-setting proposals past their deadline as expired."""
        from momentum.services.links import expire_overdue_changes
        with flask_app.app_context():
            expired = expire_overdue_changes()
            print(f"Expired {len(expired)} proposals")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(drain_sync_outbox_command)
    flask_app.cli.add_command(expire_link_proposals_command)

    return flask_app
