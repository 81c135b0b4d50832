"""Tests for the fixed-window request limiter."""
from __future__ import annotations

import pytest

from stylio import create_app
from stylio.config import TestingConfig
from stylio.extensions import db
from stylio.rate_limit import RateLimiter


class LimitedConfig(TestingConfig):
    RATELIMIT_ENABLED = True
    RATELIMIT_MAX = 3
    RATELIMIT_WINDOW_SECONDS = 60


@pytest.fixture
def limited_client():
    app = create_app(LimitedConfig)
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.drop_all()


def test_window_counts_and_resets() -> None:
    limiter = RateLimiter()

    assert limiter.hit("1.2.3.4", 60, 2, now=0) == (True, 0)
    assert limiter.hit("1.2.3.4", 60, 2, now=10) == (True, 0)
    assert limiter.hit("1.2.3.4", 60, 2, now=20) == (False, 40)
    assert limiter.hit("5.6.7.8", 60, 2, now=20) == (True, 0)
    assert limiter.hit("1.2.3.4", 60, 2, now=61) == (True, 0)


def test_expired_windows_are_swept() -> None:
    limiter = RateLimiter()
    for index in range(1000):
        limiter.hit(f"10.0.{index // 256}.{index % 256}", 1, 5, now=0)
    assert len(limiter) == 1000

    limiter.hit("10.9.9.9", 1, 5, now=100)

    assert len(limiter) == 1


def test_open_windows_survive_a_sweep() -> None:
    limiter = RateLimiter()
    limiter.hit("1.1.1.1", 1, 5, now=0)
    limiter.hit("2.2.2.2", 120, 5, now=0)

    limiter.hit("3.3.3.3", 1, 5, now=90)

    assert len(limiter) == 2
    assert limiter.hit("2.2.2.2", 120, 1, now=91) == (False, 29)


def test_requests_over_the_limit_get_429(limited_client) -> None:
    statuses = [limited_client.get("/cities").status_code for _ in range(4)]
    response = limited_client.get("/cities")

    assert statuses == [200, 200, 200, 429]
    assert response.status_code == 429
    assert response.json == {"success": False, "message": "Too many requests, please try again later."}
    assert int(response.headers["Retry-After"]) > 0


def test_health_is_never_limited(limited_client) -> None:
    statuses = {limited_client.get("/health").status_code for _ in range(6)}

    assert statuses == {200}
