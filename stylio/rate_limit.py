"""Fixed-window request limiter kept in process memory."""
from __future__ import annotations

import time
from threading import Lock

from flask import Flask, current_app, jsonify, request

# Paths that never count against the window.
EXEMPT_PATHS = {"/health", "/db-health"}
# Seconds between sweeps of expired windows.
CLEANUP_INTERVAL = 60


class RateLimiter:
    """Count requests per client key inside a fixed time window.

    Each key maps to ``{"count": int, "reset_time": float}``. The table is
    guarded by a lock since Flask may serve requests from several threads.
    """

    def __init__(self) -> None:
        self._hits: dict[str, dict[str, float]] = {}
        self._lock = Lock()
        self._last_cleanup = 0.0

    def __len__(self) -> int:
        return len(self._hits)

    def init_app(self, app: Flask) -> None:
        self.reset()
        app.extensions["rate_limiter"] = self
        app.before_request(self._check_request)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_cleanup = 0.0

    def _cleanup(self, now: float) -> None:
        """Drop windows that have already closed. Caller holds the lock."""
        if now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        expired = [key for key, entry in self._hits.items() if now >= entry["reset_time"]]
        for key in expired:
            del self._hits[key]
        self._last_cleanup = now

    def hit(self, key: str, window_seconds: int, max_requests: int, now: float | None = None) -> tuple[bool, int]:
        """Record one request for ``key``.

        Returns ``(allowed, retry_after_seconds)``.
        """
        now = time.time() if now is None else now
        with self._lock:
            self._cleanup(now)
            entry = self._hits.get(key)
            if entry is None or now >= entry["reset_time"]:
                entry = {"count": 0, "reset_time": now + window_seconds}
                self._hits[key] = entry
            entry["count"] += 1
            if entry["count"] > max_requests:
                return False, max(1, int(entry["reset_time"] - now))
            return True, 0

    def _check_request(self):
        config = current_app.config
        if not config.get("RATELIMIT_ENABLED", True) or request.path in EXEMPT_PATHS:
            return None

        key = request.remote_addr or "anonymous"
        allowed, retry_after = self.hit(
            key,
            window_seconds=config["RATELIMIT_WINDOW_SECONDS"],
            max_requests=config["RATELIMIT_MAX"],
        )
        if allowed:
            return None

        current_app.logger.warning("Rate limit exceeded for %s on %s", key, request.path)
        response = jsonify({
            "success": False,
            "message": "Too many requests, please try again later.",
        })
        response.status_code = 429
        response.headers["Retry-After"] = str(retry_after)
        return response
