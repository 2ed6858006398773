"""Prometheus metrics middleware for FastAPI."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

# Path segments followed by an identifier
_ID_PARENTS = frozenset({"orders", "stores"})


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics."""
        method = request.method
        endpoint = normalize_path(request.url.path)

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

        start_time = time.time()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            duration = time.time() - start_time
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()


def normalize_path(path: str) -> str:
    """Normalize path by replacing IDs with placeholders.

    Keeps label cardinality bounded.

    Examples:
        /api/v1/orders/1234/profit -> /api/v1/orders/{id}/profit
        /api/v1/pnl?start_date=2025-01-01 -> /api/v1/pnl

    """
    path = path.split("?")[0]

    parts = path.split("/")
    normalized = []
    for i, part in enumerate(parts):
        if not part:
            normalized.append(part)
            continue
        if part.isdigit() or (i > 0 and parts[i - 1] in _ID_PARENTS):
            normalized.append("{id}")
        else:
            normalized.append(part)

    return "/".join(normalized)
