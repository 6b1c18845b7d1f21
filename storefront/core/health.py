"""
Health and metrics endpoints.

Follows the RFC draft "Health Check Response Format for HTTP APIs": a
top-level ``status`` of pass/warn/fail plus per-component ``checks``.
"""

import os
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict

import psutil
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .logging_config import get_logger

logger = get_logger(__name__)

class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

class ServiceHealth:
    """Builds the health router for one service and its database."""

    def __init__(self, service_name: str, version: str, database):
        self.service_name = service_name
        self.version = version
        self.database = database
        self.start_time = time.time()
        self.checks_performed = 0

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        def health_check() -> Dict[str, Any]:
            """Liveness for load balancers; never touches the database."""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": datetime.utcnow().isoformat() + "Z",
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            """Readiness probe; 503 while the database is unreachable."""
            self.checks_performed += 1
            checks = {
                "database:connectivity": self._check_database(),
                "system:memory": self._check_memory(),
            }
            overall = self._overall_status(checks)
            code = status.HTTP_200_OK if overall != HealthStatus.FAIL else status.HTTP_503_SERVICE_UNAVAILABLE
            return JSONResponse(
                status_code=code,
                content={
                    "status": overall,
                    "version": self.version,
                    "serviceId": self.service_name,
                    "checks": checks,
                    "timestamp": datetime.utcnow().isoformat() + "Z",
                },
            )

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
            }

        return router

    def _check_database(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            with self.database.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": round((time.time() - start_time) * 1000, 2),
                "observedUnit": "ms",
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
            }

    def _check_memory(self) -> Dict[str, Any]:
        memory = psutil.virtual_memory()
        if memory.percent > 95:
            status_val = HealthStatus.FAIL
        elif memory.percent > 85:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": memory.percent,
            "observedUnit": "percent",
        }

    @staticmethod
    def _overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check["status"] for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
