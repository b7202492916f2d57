"""
portal/__init__.py

Flask application factory for the Quote / Purchase-Requisition Approval Portal.

Requirements:
- Employees submit requisitions; HOD then Finance approve or decline them.
- Visibility is role-scoped and re-applied on every read.
- UI is never trusted; server-side access control everywhere.
- JSON API: {"success": true, "data": ...} / {"success": false, "message": ...}
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from .errors import PortalError
from .extensions import csrf, db, login_manager, migrate
from .models import User

# Blueprint imports kept inside create_app() to reduce import side effects.


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("portal").setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "message": "Authentication required"}), 401

    # ----------------------------------------------------------------------
    # Error handlers (JSON envelope)
    # ----------------------------------------------------------------------
    @app.errorhandler(PortalError)
    def handle_portal_error(error: PortalError):
        if error.status_code >= 500:
            app.logger.error("%s: %s", error.__class__.__name__, error.message)
        else:
            app.logger.info(
                "%s for user %s: %s",
                error.__class__.__name__,
                getattr(current_user, "id", None),
                error.message,
            )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"success": False, "message": error.description}), error.code

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.requisitions import requisitions_bp
    from .blueprints.analytics import analytics_bp
    from .blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(requisitions_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(admin_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-defaults")
    def seed_defaults_command():
        """Seed default email templates and system settings."""
        from .seed import seed_defaults

        seed_defaults()
        click.echo("Default email templates and settings seeded.")

    @app.route("/health")
    def health():
        return jsonify({"success": True, "data": {"status": "ok", "app": app.config.get("APP_NAME")}})

    return app
