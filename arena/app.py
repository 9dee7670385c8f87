import logging

from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from arena.config import config

db = SQLAlchemy()
socketio = SocketIO()

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'

    if isinstance(raw_origins, (list, tuple, set)):
        cleaned = [origin for origin in raw_origins if origin]
        return cleaned or '*'

    raw_text = str(raw_origins).strip()
    if not raw_text or raw_text == '*':
        return '*'

    origins = [origin.strip() for origin in raw_text.split(',') if origin.strip()]
    return origins or '*'


def configure_logging(level_name):
    level = getattr(logging, str(level_name or 'INFO').strip().upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)


def _register_error_handlers(app):
    from arena.errors import ArenaError, UpstreamError

    @app.errorhandler(ArenaError)
    def _handle_arena_error(exc):
        if isinstance(exc, UpstreamError):
            logger.error('Upstream failure on %s %s: %s', request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc):
        return jsonify({'error': exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def _handle_unexpected_error(exc):
        logger.exception('Unhandled error on %s %s', request.method, request.path)
        return jsonify({'error': 'Internal server error'}), 500


def create_app(config_name='development', storage=None):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    configure_logging(app.config.get('LOG_LEVEL'))

    allowed_origins = _parse_allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS', '*'))
    if str(config_name).strip().lower() == 'production':
        secret_key = str(app.config.get('SECRET_KEY') or '').strip()
        if not secret_key or secret_key == 'dev-secret-key-change-in-prod':
            raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
        if allowed_origins == '*':
            raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')

    if app.config.get('SQLALCHEMY_DATABASE_URI'):
        db.init_app(app)
    # Handlers queued before init_app are re-attached to every new server.
    from arena.routes import live  # noqa: F401
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )
    # Cookie sessions need credentialed cross-origin requests.
    CORS(
        app,
        resources={r'/api/*': {'origins': allowed_origins}},
        supports_credentials=allowed_origins != '*',
    )

    @app.before_request
    def _enforce_origin_for_mutating_api_requests():
        if request.method in {'GET', 'HEAD', 'OPTIONS'}:
            return None
        if not request.path.startswith('/api/'):
            return None

        origin = str(request.headers.get('Origin') or '').strip()
        if not origin:
            return None

        configured_origins = _parse_allowed_origins(
            app.config.get('CORS_ALLOWED_ORIGINS', '*')
        )
        if configured_origins != '*' and origin not in configured_origins:
            return jsonify({'error': 'Invalid request origin'}), 403
        return None

    from arena.storage import init_storage
    from arena.services.connections import init_connections

    active_storage = init_storage(app, storage)
    init_connections(app, socketio)
    _register_error_handlers(app)

    from arena.routes.auth import auth_bp
    from arena.routes.teams import teams_bp
    from arena.routes.tournaments import tournaments_bp
    from arena.routes.registrations import registrations_bp
    from arena.routes.notifications import notifications_bp
    from arena.routes.admin import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/api')
    app.register_blueprint(teams_bp, url_prefix='/api/teams')
    app.register_blueprint(tournaments_bp, url_prefix='/api/tournaments')
    app.register_blueprint(registrations_bp, url_prefix='/api/registrations')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok', 'storage': active_storage.name})

    if active_storage.name == 'sql':
        with app.app_context():
            from arena import models  # noqa: F401
            db.create_all()

    logger.info('Arena app created (config=%s, storage=%s)', config_name, active_storage.name)
    return app
