import logging

from flask import Flask, jsonify, request
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException

from config import Config

socketio = SocketIO()
csrf = CSRFProtect()

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    csrf.init_app(app)

    # Initialize Firebase
    from pesantren.firebase_init import init_firebase
    init_firebase(app.config)

    # CORS origins
    allowed_origins = []
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', '')
    if cors_origins:
        for origin in cors_origins.split(','):
            origin = origin.strip()
            if origin:
                allowed_origins.append(origin)

    # Handlers must be registered before init_app so every new server binds them
    from pesantren import events  # noqa: F401

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins if allowed_origins else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'eventlet'),
    )

    from pesantren.decorators import load_current_user

    @app.before_request
    def before_request():
        load_current_user()

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return jsonify({'error': 'CSRF token missing or invalid', 'details': e.description}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'error': e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception('Unhandled error on %s %s', request.method, request.path)
        return jsonify({'error': 'Internal server error'}), 500

    # Register blueprints
    from pesantren.routes import (
        auth, chat, classes, reports, notifications, orangtua,
        santri, ustads, dashboard, role_requests
    )
    app.register_blueprint(auth.bp)
    app.register_blueprint(chat.bp)
    app.register_blueprint(classes.bp)
    app.register_blueprint(reports.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(orangtua.bp)
    app.register_blueprint(santri.bp)
    app.register_blueprint(ustads.bp)
    app.register_blueprint(dashboard.bp)
    app.register_blueprint(role_requests.bp)

    return app
