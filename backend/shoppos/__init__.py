# backend/shoppos/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Collaborators the sales core calls out to; embedding apps may replace them
    from .access import AccessPolicy
    from .services.notifier import EventNotifier, log_event
    from .time_utils import resolve_business_date

    notifier = EventNotifier()
    notifier.subscribe(log_event)
    app.extensions["shoppos"] = {
        "notifier": notifier,
        "business_date_resolver": resolve_business_date,
        "access_policy": AccessPolicy(),
    }

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.customers import customers_bp
    from .routes.cash import cash_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(cash_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
