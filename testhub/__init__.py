"""
Test Management Hub
Flask Application Factory.

Usage:
    from testhub import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from testhub.config import config
from testhub.middleware.jwt_auth import init_jwt_middleware
from testhub.middleware.logging_config import configure_logging
from testhub.middleware.timing import init_request_timing
from testhub.models import db
from testhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiate so ProductionConfig can refuse to start without its env vars.
    app.config.from_object(config[config_name]())

    configure_logging(app)

    db.init_app(app)

    init_request_timing(app)
    init_jwt_middleware(app)
    register_error_handlers(app)

    # Register every model on the metadata before create_all()
    from testhub.models import auth as _auth_models                  # noqa: F401
    from testhub.models import company as _company_models            # noqa: F401
    from testhub.models import hierarchy as _hierarchy_models        # noqa: F401
    from testhub.models import invitation as _invitation_models      # noqa: F401
    from testhub.models import notification as _notification_models  # noqa: F401

    with app.app_context():
        db.create_all()

    from testhub.blueprints.auth_bp import auth_bp
    from testhub.blueprints.company_bp import company_bp
    from testhub.blueprints.health_bp import health_bp
    from testhub.blueprints.hierarchy_bp import hierarchy_bp
    from testhub.blueprints.invitation_bp import invitation_bp
    from testhub.blueprints.notification_bp import notification_bp
    from testhub.blueprints.testing_bp import testing_bp
    from testhub.blueprints.user_bp import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(company_bp)
    app.register_blueprint(hierarchy_bp)
    app.register_blueprint(testing_bp)
    app.register_blueprint(invitation_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    return app
