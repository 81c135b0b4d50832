"""Configuration objects for the Stylio API."""
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class SearchSettings:
    """Defaults shared by every discovery endpoint.

    One instance lives under ``app.config["SEARCH"]`` and is handed to the
    pipeline assembler and the pagination helper instead of each handler
    carrying its own constants.
    """

    default_radius: int = 5000
    min_radius: int = 100
    max_radius: int = 20000
    default_limit: int = 20
    max_limit: int = 50
    service_default_limit: int = 50
    service_max_limit: int = 100
    search_section_limit: int = 10
    max_section_limit: int = 20
    suggestion_limit: int = 5
    trending_days: int = 7


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


class Config:
    ENV = os.environ.get("APP_ENV", "development")
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///stylio.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    ACCESS_TOKEN_MAX_AGE = _env_int("ACCESS_TOKEN_MAX_AGE", 60 * 60 * 24)
    REFRESH_TOKEN_MAX_AGE = _env_int("REFRESH_TOKEN_MAX_AGE", 60 * 60 * 24 * 30)

    RATELIMIT_ENABLED = True
    RATELIMIT_WINDOW_SECONDS = _env_int("RATELIMIT_WINDOW_SECONDS", 15 * 60)
    RATELIMIT_MAX = _env_int("RATELIMIT_MAX", 100)

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    PROPAGATE_STACK = True

    # Inline avatar blobs (data URIs) above this size are rejected.
    MAX_AVATAR_BYTES = _env_int("MAX_AVATAR_BYTES", 2 * 1024 * 1024)

    SEARCH = SearchSettings()


class DevelopmentConfig(Config):
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    ENV = "testing"
    TESTING = True
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATELIMIT_ENABLED = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(Config):
    ENV = "production"
    PROPAGATE_STACK = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


CONFIGS = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def config_for(name: str | None):
    return CONFIGS.get((name or "development").lower(), DevelopmentConfig)
