import logging
import os

from flask import Flask, g, request
from flask_cors import CORS

from .config import config_for
from .errors import register_error_handlers
from .extensions import db, limiter
from .responses import API_LEGACY, API_V1
from .routes import register_routes

LEGACY_VERSION_NAMES = {"legacy", "v0"}


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(config_object or config_for(os.environ.get("APP_ENV")))
    app.config.from_envvar("APP_SETTINGS", silent=True)

    if app.config.get("ENV") == "production":
        for key in ("SECRET_KEY", "DATABASE_URL"):
            if not os.environ.get(key):
                raise RuntimeError(f"{key} must be set in production")

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db.init_app(app)
    limiter.init_app(app)

    CORS(app,
         origins=app.config.get("CORS_ORIGINS", ["*"]),
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization", "X-API-Version"],
         methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )

    @app.before_request
    def resolve_api_version():
        requested = request.headers.get("X-API-Version") or request.args.get("apiVersion") or API_V1
        g.api_version = API_LEGACY if requested.strip().lower() in LEGACY_VERSION_NAMES else API_V1

    @app.after_request
    def log_request(response):
        app.logger.info("%s %s %s", request.method, request.path, response.status_code)
        return response

    register_error_handlers(app)
    register_routes(app)

    return app
