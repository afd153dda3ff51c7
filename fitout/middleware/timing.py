"""
Request id and timing hooks.

Each request gets an id (client ``X-Request-ID`` or a fresh one) that the
logging filter picks up. Responses carry ``X-Request-ID`` and
``X-Response-Time``; requests slower than ``SLOW_REQUEST_MS`` are logged as
warnings, server errors as errors.
"""

import logging
import time
import uuid

from flask import g, request

logger = logging.getLogger(__name__)

QUIET_PATHS = ("/api/v1/health",)


def init_request_timing(app):
    slow_ms = app.config.get("SLOW_REQUEST_MS", 1000)

    @app.before_request
    def _begin():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_started = time.perf_counter()

    @app.after_request
    def _finish(response):
        started = g.pop("request_started", None)
        if started is None:
            return response
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"

        if request.path.startswith(QUIET_PATHS):
            return response
        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": round(elapsed_ms, 1),
        }
        if response.status_code >= 500:
            logger.error("%s %s -> %d", request.method, request.path, response.status_code, extra=extra)
        elif elapsed_ms > slow_ms:
            logger.warning("Slow %s %s took %.0fms", request.method, request.path, elapsed_ms, extra=extra)
        else:
            logger.debug("%s %s -> %d", request.method, request.path, response.status_code, extra=extra)
        return response
