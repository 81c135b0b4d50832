"""Shared Flask extensions for the application."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

from .rate_limit import RateLimiter

# SQLAlchemy database instance shared across the app.
db = SQLAlchemy()

# Per-process fixed window limiter, configured from app.config in init_app.
limiter = RateLimiter()
