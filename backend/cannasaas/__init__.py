# backend/cannasaas/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app reads SQLALCHEMY_DATABASE_URI
    if config_overrides:
        app.config.update(config_overrides)

    logging.getLogger("cannasaas").setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.orders import orders_bp
    from .routes.compliance import compliance_bp
    from .routes.inventory import inventory_bp
    from .routes.deliveries import deliveries_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(compliance_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(deliveries_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
