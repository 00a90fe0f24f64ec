import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

load_dotenv()

db = SQLAlchemy()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address)
socketio = SocketIO()


def create_app(config_name=None):
    from identity_api.config import DEV_SECRET, config_by_name

    config_name = config_name or os.getenv('FLASK_ENV', 'development')
    app = Flask(__name__)
    app.config.from_object(config_by_name.get(config_name, config_by_name['development']))

    if config_name == 'production' and app.config['JWT_SECRET_KEY'] == DEV_SECRET:
        raise RuntimeError('JWT_SECRET_KEY must be set in production')

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    CORS(app, origins=app.config['CORS_ORIGINS'])
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['CORS_ORIGINS'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
    )

    # Make sure every table is known to the metadata before create_all
    from identity_api import models  # noqa: F401

    from identity_api.routes import register_routes
    register_routes(app)

    from identity_api.socket_events import register_socket_events
    register_socket_events(socketio)

    from identity_api.commands import register_commands
    register_commands(app)

    _register_error_handlers(app)

    @app.route('/health', methods=['GET'])
    @app.route('/api/health', methods=['GET'])
    @limiter.exempt
    def health():
        return {'status': 'ok'}, 200

    app.logger.info(f"Identity API started ({config_name})")
    return app


def _register_error_handlers(app):
    """Every error leaves the API as {"message": ...} JSON."""

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'message': e.description}), e.code

    @app.errorhandler(429)
    def handle_rate_limited(e):
        return jsonify({'message': f'Too many requests: {e.description}'}), 429

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return handle_http_error(e)
        app.logger.exception(f"Unhandled error: {e}")
        db.session.rollback()
        return jsonify({'message': 'Internal server error'}), 500
