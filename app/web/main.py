"""FastAPI application serving P&L, dashboard and customer economics reports."""

from __future__ import annotations

import time

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.core.config import get_settings
from app.core.logging import get_logger, get_request_id, set_request_id, setup_logging
from app.core.metrics import app_info, app_uptime_seconds, errors_total
from app.web.middleware.prometheus import PrometheusMiddleware
from app.web.routers import dashboard, healthcheck, orders, pnl, reports, shipping

APP_VERSION = "0.1.0"
APP_START_TIME = time.time()

settings = get_settings()
setup_logging(level=settings.log_level, json_format=settings.log_json, file_path=settings.log_file_path)
log = get_logger("profit_dashboard.web")

app = FastAPI(
    title="Profit Dashboard API",
    version=APP_VERSION,
    description="P&L, dashboard and customer economics reports for e-commerce merchants",
)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app_info.labels(version=APP_VERSION, environment=settings.environment).set(1)

_ROUTERS = (
    (healthcheck.router, "", "Monitoring"),
    (pnl.router, "/api/v1/pnl", "P&L"),
    (dashboard.router, "/api/v1/dashboard", "Dashboard"),
    (orders.router, "/api/v1/orders", "Orders"),
    (shipping.router, "/api/v1/shipping", "Shipping"),
    (reports.router, "/api/v1/reports", "Reports"),
)
for router, prefix, tag in _ROUTERS:
    app.include_router(router, prefix=prefix, tags=[tag])


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Adopt X-Request-ID (or generate one) and echo it on the response."""
    request_id = set_request_id(request.headers.get("x-request-id"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log and count unexpected errors; answer 500 with a correlatable id."""
    request_id = get_request_id() or set_request_id()
    error_type = type(exc).__name__

    errors_total.labels(error_type=error_type, component="web").inc()
    log.error(
        "unhandled_exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
            "error_type": error_type,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "request_id": request_id,
            "hint": "Contact support with this request_id",
        },
    )


@app.get("/health")
def health():
    """Liveness check."""
    return {"status": "healthy"}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""
    app_uptime_seconds.set(time.time() - APP_START_TIME)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
