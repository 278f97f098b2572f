"""
Health check aggregation — deep probe for the backend's dependencies.

Checks:
    • Database connectivity (``SELECT 1`` through the shared engine)
    • Notification push topic configuration

Used by the ``/health`` and ``/health/ready`` routes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from sqlalchemy import text

from crisis_backend.app.core.config import settings
from crisis_backend.app.core.database import get_engine

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


def check_database() -> ComponentHealth:
    """Round-trip a trivial query through the connection pool."""
    comp = ComponentHealth(name="database")
    start = time.monotonic()
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        comp.message = "Connection pool available"
        comp.details = {"dialect": engine.dialect.name}
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_notification_channel() -> ComponentHealth:
    """Push delivery is simulated; only the topic layout is reported."""
    comp = ComponentHealth(name="notification_push")
    start = time.monotonic()
    prefix = settings.NOTIFICATION_TOPIC_PREFIX
    if not prefix.startswith("/"):
        comp.status = HealthStatus.DEGRADED
        comp.message = f"Topic prefix should be absolute, got {prefix!r}"
    else:
        comp.message = "Push topics configured"
    comp.details = {"topic_prefix": prefix}
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def run_health_check() -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )
    report.components.append(check_database())
    report.components.append(check_notification_channel())

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
