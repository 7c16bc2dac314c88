"""
Campus Library - Flask Application
Application factory
"""
import atexit
import logging
from typing import Type

from flask import Flask, g, session
from werkzeug.exceptions import HTTPException

from campus_library.cli import register_commands
from campus_library.config.config import Config
from campus_library.extensions import socketio
from campus_library.models.database import close_db, init_db
from campus_library.models.guest import Guest
from campus_library.models.user import User
from campus_library.utils.responses import error_response


def _configure_logging(app: Flask) -> None:
    if app.config.get('TESTING'):
        return
    logging.basicConfig(
        level=logging.DEBUG if app.debug else logging.INFO,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def _register_blueprints(app: Flask) -> None:
    from campus_library.routes.admin_routes import admin_bp
    from campus_library.routes.auth_routes import auth_bp
    from campus_library.routes.book_routes import book_bp
    from campus_library.routes.borrow_routes import borrow_bp
    from campus_library.routes.review_routes import review_bp
    from campus_library.routes.status_routes import status_bp
    from campus_library.routes.user_routes import user_bp

    for blueprint in (auth_bp, book_bp, borrow_bp, review_bp, user_bp, admin_bp, status_bp):
        app.register_blueprint(blueprint)


def _register_error_handlers(app: Flask) -> None:

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return error_response(error.description, error.code, error.name)

    @app.errorhandler(500)
    def internal_error(error):
        original = getattr(error, 'original_exception', None) or error
        app.logger.error('Unhandled error: %s', original, exc_info=original)
        return error_response('An unexpected error occurred', 500)


def create_app(config_class: Type[Config] = Config) -> Flask:
    """Build and configure the Flask application.

    Args:
        config_class: Configuration object to load.

    Returns:
        Configured Flask app with blueprints, SocketIO and CLI commands.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    # Bind the shared SocketIO instance to this app
    socketio.init_app(app)

    app.teardown_appcontext(close_db)

    @app.before_request
    def load_current_user():
        """Expose the signed-in user (or a Guest) as g.user."""
        user = None
        if 'user_id' in session:
            user = User.get_by_id(session['user_id'])
            if user is None:
                session.clear()
            else:
                user.touch_activity()
        g.user = user or Guest()

    _register_blueprints(app)
    _register_error_handlers(app)
    register_commands(app)

    # Initialize database
    with app.app_context():
        init_db()

    # Start scheduled background tasks
    if app.config.get('ENABLE_SCHEDULER') and not app.config.get('TESTING'):
        from campus_library.scheduled_tasks import shutdown_scheduler, start_scheduler
        start_scheduler(app)
        # Ensure scheduler shuts down gracefully
        atexit.register(shutdown_scheduler)

    return app


if __name__ == '__main__':
    application = create_app()
    socketio.run(application, debug=True, host='0.0.0.0', port=5000)
