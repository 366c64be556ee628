"""
Application Factory
Creates and configures the Flask application
"""
import logging

from flask import Flask, jsonify

from examcore.config import get_config
from examcore.errors import EngineError, HTTP_STATUS
from examcore.extensions import db, socketio

logger = logging.getLogger(__name__)


def create_app(config_name=None, relationships=None):
    """
    Application factory pattern
    Creates and configures Flask app

    relationships: guardian directory used by the access guard
    """
    app = Flask(__name__)

    # Load configuration
    if config_name:
        from examcore.config import config
        app.config.from_object(config[config_name])
    else:
        app.config.from_object(get_config())

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Initialize extensions
    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['SOCKETIO_CORS_ALLOWED_ORIGINS'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE']
    )

    from examcore.services.engine import build_engine
    app.extensions['examcore'] = build_engine(app, relationships)

    # Register blueprints
    from examcore.routes import execution_bp, progression_bp
    app.register_blueprint(execution_bp, url_prefix='/api')
    app.register_blueprint(progression_bp, url_prefix='/api/progression')

    @app.errorhandler(EngineError)
    def handle_engine_error(error):
        if error.kind not in HTTP_STATUS or HTTP_STATUS[error.kind] >= 500:
            logger.error("Request failed: %s", error.message, exc_info=error)
        return jsonify(error.to_dict()), HTTP_STATUS.get(error.kind, 500)

    # Register Socket.IO events
    from examcore.sockets import register_socket_events
    register_socket_events()

    # Create database tables
    with app.app_context():
        db.create_all()
        logger.info("Database tables created/verified")

    return app
