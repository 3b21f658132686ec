"""
Health checks for liveness and readiness.
"""
from datetime import datetime, timezone
from typing import Dict, Any
import psutil
from .clock import AuthoritativeClock
from .adapters.base import PunchStore
from .logging import get_logger

logger = get_logger()


class HealthChecker:
    """
    Health checker for the punchclock service.

    Provides:
    - Liveness checks (is the service running?)
    - Readiness checks (can the service record punches?)
    """

    def __init__(self, service_name: str = "punchclock", version: str = "0.1.0"):
        self.service_name = service_name
        self.version = version

    def _envelope(self) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "version": self.version,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    def liveness(self) -> Dict[str, Any]:
        """
        Liveness check - basic health check.

        Returns:
            dict: Health status with service info and timestamp
        """
        return {"status": "ok", **self._envelope()}

    async def readiness(self, store: PunchStore, clock: AuthoritativeClock) -> Dict[str, Any]:
        """
        Readiness check.

        Store and resource errors make the service not ready. A degraded
        clock does not: punches are still accepted using the host clock.

        Args:
            store: Record store that must accept appends
            clock: Authoritative clock (inspected, never queried here)

        Returns:
            dict: Readiness status with detailed check results
        """
        checks = {
            "store": await self._check_store(store),
            "clock": self._check_clock(clock),
            "disk_space": self._check_disk_space(),
            "memory": self._check_memory(),
        }
        ready = all(check["status"] != "error" for check in checks.values())

        return {
            "status": "ready" if ready else "not_ready",
            **self._envelope(),
            "checks": checks,
        }

    async def _check_store(self, store: PunchStore) -> Dict[str, Any]:
        try:
            healthy = await store.health_check()
        except Exception as e:
            logger.warning("store_health_check_failed", error=str(e))
            return {"status": "error", "error": str(e)}
        return {"status": "ok" if healthy else "error", "backend": type(store).__name__}

    def _check_clock(self, clock: AuthoritativeClock) -> Dict[str, Any]:
        sample = clock.last_sample
        if sample is None:
            return {"status": "ok", "message": "not sampled yet"}
        if sample.degraded:
            return {"status": "degraded", "source": "host"}
        reading = clock.cache.peek()
        return {"status": "ok", "source": "reference", "reference": reading.reference if reading else None}

    def _check_disk_space(self, threshold_gb: float = 1.0) -> Dict[str, Any]:
        """
        Check available disk space.

        Args:
            threshold_gb: Minimum available disk space in GB (default: 1.0)
        """
        try:
            disk = psutil.disk_usage("/")
        except OSError as e:
            logger.warning("disk_health_check_failed", error=str(e))
            return {"status": "error", "error": str(e)}

        available_gb = disk.free / (1024**3)
        if available_gb < threshold_gb:
            status = "error"
        elif available_gb < threshold_gb * 2:
            status = "warning"
        else:
            status = "ok"

        return {
            "status": status,
            "available_gb": round(available_gb, 2),
            "used_percent": disk.percent,
        }

    def _check_memory(self, threshold_mb: float = 50.0) -> Dict[str, Any]:
        """
        Check available memory.

        Args:
            threshold_mb: Minimum available memory in MB (default: 50.0)
        """
        memory = psutil.virtual_memory()
        available_mb = memory.available / (1024**2)

        if available_mb < threshold_mb:
            status = "error"
        elif available_mb < threshold_mb * 2:
            status = "warning"
        else:
            status = "ok"

        return {
            "status": status,
            "available_mb": round(available_mb, 2),
            "used_percent": memory.percent,
        }
