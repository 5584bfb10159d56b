"""
Health and readiness endpoints.

Liveness is a constant answer; readiness checks the database through the
engine the application was built with, plus disk and memory headroom.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from typing import Callable, Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum
import logging
import os
import time
import psutil

logger = logging.getLogger(__name__)

Check = Dict[str, Any]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


def _result(status_val: HealthStatus, component: str, **fields) -> Check:
    return {"status": status_val, "componentType": component, "time": _now(), **fields}


def _threshold(value: float, fail_below: float, warn_below: float) -> HealthStatus:
    if value < fail_below:
        return HealthStatus.FAIL
    if value < warn_below:
        return HealthStatus.WARN
    return HealthStatus.PASS


def overall_status(checks: Dict[str, Check]) -> HealthStatus:
    statuses = {check.get("status", HealthStatus.PASS) for check in checks.values()}
    for candidate in (HealthStatus.FAIL, HealthStatus.WARN):
        if candidate in statuses:
            return candidate
    return HealthStatus.PASS


class ServiceHealth:
    """
    Builds the health router for one service.

    ``engine_provider`` returns the SQLAlchemy engine to probe; it is a
    callable so the router can be created before the engine exists.
    ``config_provider`` returns a mapping of required setting name to value;
    empty values fail the startup probe.
    """

    MIN_FREE_DISK_GB = (1, 5)
    MIN_FREE_MEMORY_MB = (100, 500)

    def __init__(
        self,
        service_name: str,
        version: str = "1.0.0",
        engine_provider: Optional[Callable[[], Engine]] = None,
        config_provider: Optional[Callable[[], Dict[str, Any]]] = None,
    ):
        self.service_name = service_name
        self.version = version
        self.engine_provider = engine_provider
        self.config_provider = config_provider
        self.start_time = time.time()
        self.checks_performed = 0

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health")
        async def health_check() -> Dict[str, Any]:
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now(),
            }

        @router.get("/health/live")
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            """Database, disk and memory; 503 only when a check fails outright."""
            self.checks_performed += 1
            checks = {
                "database:connectivity": self.check_database(),
                "storage:disk_space": self.check_disk_space(),
                "system:memory": self.check_memory(),
            }
            overall = overall_status(checks)
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE if overall == HealthStatus.FAIL else status.HTTP_200_OK,
                content={
                    "status": overall,
                    "serviceId": self.service_name,
                    "version": self.version,
                    "checks": checks,
                    "timestamp": _now(),
                },
            )

        @router.get("/health/startup")
        async def startup() -> Any:
            checks = {"config:environment": self.check_configuration()}
            if overall_status(checks) == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks},
                )
            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        async def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
            }

        return router

    def check_database(self) -> Check:
        if self.engine_provider is None:
            return _result(HealthStatus.WARN, "datastore", output="No engine configured")
        started = time.perf_counter()
        try:
            with self.engine_provider().connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return _result(HealthStatus.FAIL, "datastore", output=str(e))
        elapsed_ms = (time.perf_counter() - started) * 1000
        return _result(HealthStatus.PASS, "datastore", observedValue=round(elapsed_ms, 2), observedUnit="ms")

    def check_disk_space(self) -> Check:
        free_gb = psutil.disk_usage('/').free / (1024 ** 3)
        return _result(
            _threshold(free_gb, *self.MIN_FREE_DISK_GB), "system",
            observedValue=round(free_gb, 2), observedUnit="GB",
        )

    def check_memory(self) -> Check:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        return _result(
            _threshold(available_mb, *self.MIN_FREE_MEMORY_MB), "system",
            observedValue=round(available_mb, 2), observedUnit="MB",
        )

    def check_configuration(self) -> Check:
        required = self.config_provider() if self.config_provider else {}
        missing = [name for name, value in required.items() if not value]
        if missing:
            return _result(HealthStatus.FAIL, "configuration", output=f"Missing configuration: {', '.join(missing)}")
        return _result(HealthStatus.PASS, "configuration")
