# backend/backoffice/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def _install_cors(app: Flask) -> None:
    """Echo the Origin header back for origins listed in CORS_ALLOWED_ORIGINS."""
    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin not in allowed_origins:
            return response
        response.headers.update({
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Headers": "Authorization, Content-Type",
            "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,PATCH,OPTIONS",
            "Vary": "Origin",
        })
        return response


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    migrate.init_app(app, db)

    from . import delivery
    delivery.init_app(app)

    # Models must be imported before create_all / flask db migrate see the metadata
    from . import models  # noqa: F401
    from . import signals  # noqa: F401

    from .routes.auth import auth_bp
    from .routes.closures import closures_bp
    from .routes.companies import companies_bp
    from .routes.consumption import consumption_bp
    from .routes.reports import reports_bp
    from .routes.sends import sends_bp
    from .routes.settings import settings_bp
    from .routes.system import system_bp

    for blueprint in (
        system_bp, auth_bp, companies_bp, consumption_bp,
        closures_bp, sends_bp, settings_bp, reports_bp,
    ):
        app.register_blueprint(blueprint)

    _install_cors(app)

    from .cli import register_commands
    register_commands(app)

    return app
