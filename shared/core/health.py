"""
Health and metrics endpoints

Response bodies follow the Health Check Response Format for HTTP APIs draft;
the probe routes line up with Kubernetes liveness/readiness/startup probes.
"""

import logging
import os
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

import psutil
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

MIN_FREE_DISK_GB = (1, 5)
MIN_AVAILABLE_MEMORY_MB = (100, 500)


def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


def _component(state: HealthStatus, component_type: str, **fields) -> Dict[str, Any]:
    return {"status": state, "componentType": component_type, **fields, "time": _now()}


def _grade(value: float, fail_below: float, warn_below: float) -> HealthStatus:
    if value < fail_below:
        return HealthStatus.FAIL
    if value < warn_below:
        return HealthStatus.WARN
    return HealthStatus.PASS


def overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
    states = {check.get("status", HealthStatus.PASS) for check in checks.values()}
    if HealthStatus.FAIL in states:
        return HealthStatus.FAIL
    if HealthStatus.WARN in states:
        return HealthStatus.WARN
    return HealthStatus.PASS


class ServiceHealth:
    """
    Health endpoints for a service backed by one SQLAlchemy engine.

    ``config_check`` returns a list of configuration problems (empty when the
    service is configured). ``required_tables`` are checked at startup so a
    service pointed at an unmigrated database reports it.
    """

    def __init__(
        self,
        service_name: str,
        version: str = "1.0.0",
        engine: Optional[Engine] = None,
        config_check: Optional[Callable[[], List[str]]] = None,
        required_tables: Iterable[str] = (),
    ):
        self.service_name = service_name
        self.version = version
        self.engine = engine
        self.config_check = config_check
        self.required_tables = tuple(required_tables)
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            """Cheap check for load balancers; touches no dependency"""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now(),
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            checks = self.readiness_checks()
            state = overall_status(checks)
            return JSONResponse(
                status_code=status.HTTP_200_OK if state == HealthStatus.PASS else status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": state,
                    "version": self.version,
                    "releaseId": os.getenv("RELEASE_ID", "unknown"),
                    "checks": checks,
                    "serviceId": self.service_name,
                    "description": f"{self.service_name} microservice",
                    "timestamp": _now(),
                },
            )

        @router.get("/health/startup")
        def startup():
            checks = self.startup_checks()
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
                "last_check_time": self.last_check_time,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
            }

        return router

    def readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()
        return {
            "database:connectivity": self._check_database(),
            "storage:disk_space": self._check_disk_space(),
            "system:memory": self._check_memory(),
        }

    def startup_checks(self) -> Dict[str, Dict[str, Any]]:
        return {
            "database:migrations": self._check_migrations(),
            "database:schema": self._check_schema(),
            "config:environment": self._check_environment(),
        }

    def _no_engine(self) -> Dict[str, Any]:
        return _component(HealthStatus.WARN, "datastore", output="No database configured")

    def _check_database(self) -> Dict[str, Any]:
        if self.engine is None:
            return self._no_engine()
        started = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return _component(HealthStatus.FAIL, "datastore", output=str(e))
        elapsed_ms = (time.perf_counter() - started) * 1000
        return _component(HealthStatus.PASS, "datastore", observedValue=f"{elapsed_ms:.2f}", observedUnit="ms")

    def _check_disk_space(self) -> Dict[str, Any]:
        try:
            free_gb = psutil.disk_usage("/").free / (1024 ** 3)
        except OSError as e:
            return _component(HealthStatus.WARN, "system", output=str(e))
        return _component(_grade(free_gb, *MIN_FREE_DISK_GB), "system", observedValue=f"{free_gb:.2f}", observedUnit="GB")

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        return _component(
            _grade(available_mb, *MIN_AVAILABLE_MEMORY_MB), "system",
            observedValue=f"{available_mb:.2f}", observedUnit="MB",
        )

    def _existing_tables(self) -> set:
        return set(inspect(self.engine).get_table_names())

    def _check_migrations(self) -> Dict[str, Any]:
        """Alembic's version table exists once migrations have run"""
        if self.engine is None:
            return self._no_engine()
        try:
            tables = self._existing_tables()
        except Exception as e:
            return _component(HealthStatus.FAIL, "datastore", output=str(e))
        if "alembic_version" in tables:
            return _component(HealthStatus.PASS, "datastore")
        return _component(HealthStatus.WARN, "datastore", output="Migrations table not found")

    def _check_schema(self) -> Dict[str, Any]:
        if self.engine is None:
            return self._no_engine()
        try:
            missing = sorted(set(self.required_tables) - self._existing_tables())
        except Exception as e:
            return _component(HealthStatus.FAIL, "datastore", output=str(e))
        if missing:
            return _component(HealthStatus.FAIL, "datastore", output=f"Missing tables: {', '.join(missing)}")
        return _component(HealthStatus.PASS, "datastore")

    def _check_environment(self) -> Dict[str, Any]:
        problems = self.config_check() if self.config_check else []
        if problems:
            return _component(HealthStatus.FAIL, "configuration", output="; ".join(problems))
        return _component(HealthStatus.PASS, "configuration")
