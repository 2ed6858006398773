"""Dependency health checks for load balancers and on-call."""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Any

import psutil
import redis
from fastapi import APIRouter, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.cache import report_cache
from app.db.session import SessionLocal

router = APIRouter()

# Usage above this percentage marks a resource as "warning"
USAGE_WARNING_PCT = 90


def _check_database() -> dict[str, Any]:
    started = time.perf_counter()
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return {"status": "error", "error": str(e)}
    finally:
        db.close()
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}


def _check_disk() -> dict[str, Any]:
    disk = psutil.disk_usage("/")
    return {
        "status": "warning" if disk.percent > USAGE_WARNING_PCT else "ok",
        "free_gb": round(disk.free / 1024**3, 2),
        "used_percent": disk.percent,
    }


def _check_memory() -> dict[str, Any]:
    mem = psutil.virtual_memory()
    return {
        "status": "warning" if mem.percent > USAGE_WARNING_PCT else "ok",
        "available_mb": round(mem.available / 1024**2, 2),
        "used_percent": mem.percent,
    }


def _check_report_cache() -> dict[str, Any]:
    try:
        report_cache.ping()
        entries = report_cache.size()
    except redis.RedisError as e:
        # Reports still compute without the cache
        return {"status": "warning", "error": str(e)}
    return {"status": "ok", "entries": entries}


def _process_uptime() -> dict[str, Any]:
    seconds = time.time() - psutil.Process(os.getpid()).create_time()
    return {"status": "ok", "uptime_seconds": round(seconds, 2), "uptime_human": format_uptime(seconds)}


@router.get("/healthz")
def healthz():
    """Report database, disk, memory, report cache and uptime status.

    A failing database makes the service "unhealthy", a nearly full disk
    "degraded"; both answer 503. High memory usage or an unreachable report
    cache only degrade the status.
    """
    checks: dict[str, Any] = {
        "database": _check_database(),
        "disk": _check_disk(),
        "memory": _check_memory(),
        "report_cache": _check_report_cache(),
        "uptime": _process_uptime(),
    }

    if checks["database"]["status"] == "error":
        status = "unhealthy"
    elif any(c["status"] == "warning" for c in checks.values()):
        status = "degraded"
    else:
        status = "healthy"
    healthy = status != "unhealthy" and checks["disk"]["status"] == "ok"

    checks["timestamp"] = datetime.now(timezone.utc).isoformat()
    response = {"status": status, "healthy": healthy, "checks": checks}

    if not healthy:
        raise HTTPException(status_code=503, detail=response)
    return response


def format_uptime(seconds: float) -> str:
    """Human-readable uptime, e.g. "1d 2h 30m"."""
    minutes_total = int(seconds // 60)
    days, rest = divmod(minutes_total, 24 * 60)
    hours, minutes = divmod(rest, 60)

    parts = [f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h")) if value]
    if minutes or not parts:
        parts.append(f"{minutes}m")
    return " ".join(parts)
