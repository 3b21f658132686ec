"""Request metrics and access logging."""
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

log = structlog.get_logger()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Collects HTTP metrics for Prometheus and logs one line per request.

    - Request count by method, route, status
    - Request duration histogram
    - Active request gauge
    """

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        service = self.metrics.service_name
        active = self.metrics.http_requests_active.labels(service=service)
        active.inc()
        start_time = time.perf_counter()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
            return response
        except Exception as e:
            log.error("http_request_error", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            duration = time.perf_counter() - start_time
            # Label by route template so ids in paths don't explode cardinality
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)

            self.metrics.http_requests_total.labels(
                service=service, method=request.method, path=path, status=status,
            ).inc()
            self.metrics.http_request_duration.labels(
                service=service, method=request.method, path=path,
            ).observe(duration)
            active.dec()

            log.info("http_request", http_status=status, duration_ms=round(duration * 1000, 2))
