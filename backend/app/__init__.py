"""Flask application factory."""

import logging
import os
from typing import Optional

from flask import Flask, current_app
from flask_cors import CORS

from services.config import Config, DEFAULT_CORS_ORIGINS, load_config
from services.errors import SchedulerError


def load_ado_config(app) -> Optional[Config]:
    """Load the Azure DevOps connection settings from the environment.

    The server still starts without them; upstream-backed routes then
    report that the connection is not configured.
    """
    try:
        config = load_config()
    except SchedulerError as e:
        app.logger.warning(f"Azure DevOps connection not configured: {e}")
        return None

    app.logger.info(
        f"Loaded Azure DevOps settings for project '{config.project}' "
        f"at {config.organization_url}"
    )
    return config


def get_ado_config() -> Optional[Config]:
    """Return the Azure DevOps settings of the running app, if any."""
    return current_app.config.get("ADO_CONFIG")


def create_app(config: Optional[Config] = None):
    """Create and configure the Flask application."""
    log_level = config.log_level if config else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)

    if config is None:
        config = load_ado_config(app)
    app.config["ADO_CONFIG"] = config

    origins = list(config.cors_origins if config else DEFAULT_CORS_ORIGINS)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": origins,
            "methods": ["GET", "POST", "PATCH", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    # Register blueprints
    from app.api import cycle_time, health, workitems
    app.register_blueprint(workitems.bp)
    app.register_blueprint(cycle_time.bp)
    app.register_blueprint(health.bp)

    # Process liveness, no upstream call
    @app.route("/health")
    def health_status():
        return {"status": "ok"}

    return app
