"""
Application Factory
Creates and configures the Flask application
"""
import logging

from flask import Flask, jsonify
from examgate.config import get_config
from examgate.extensions import db, socketio
from examgate.services.errors import ExamgateError

logger = logging.getLogger(__name__)


def handle_examgate_error(error):
    """Render domain errors as JSON with their status"""
    return jsonify(error.to_dict()), error.status_code


def create_app(config_name=None):
    """
    Application factory pattern
    Creates and configures Flask app
    """
    app = Flask(__name__)

    # Load configuration
    if config_name:
        from examgate.config import config
        app.config.from_object(config[config_name])
    else:
        app.config.from_object(get_config())

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Initialize extensions
    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['SOCKETIO_CORS_ALLOWED_ORIGINS'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE']
    )

    from examgate.services import proctor_registry
    from examgate.services.execution_adapter import ExecutionAdapter
    proctor_registry.init_app(app)
    app.extensions['examgate.execution'] = ExecutionAdapter.from_config(app.config)

    app.register_error_handler(ExamgateError, handle_examgate_error)

    # Register blueprints
    from examgate.routes import auth_bp, teacher_bp, student_bp

    # Auth routes (no prefix)
    app.register_blueprint(auth_bp)

    # Teacher routes (prefixed with /teacher)
    app.register_blueprint(teacher_bp, url_prefix='/teacher')

    # Student routes (prefixed with /student)
    app.register_blueprint(student_bp, url_prefix='/student')

    # Register Socket.IO events
    from examgate.sockets import register_socket_events
    with app.app_context():
        register_socket_events()

    # Create database tables
    with app.app_context():
        db.create_all()
        logger.info('Database tables created/verified')

    return app
