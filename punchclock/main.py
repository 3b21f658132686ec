"""
Punchclock - server-timestamped clock-in/out service.

Features:
- Authoritative time from NTP/HTTP references with cache and host fallback
- Skew policy for offline clients' approximate server time
- Punch records carrying offline reconciliation fields
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import make_asgi_app
from .config import get_settings
from .logging import setup_logging, get_logger
from .api.router import router
from .adapters.base import StoreError
from .middleware import (
    ClockHeadersMiddleware,
    CorrelationIdMiddleware,
    ErrorHandlerMiddleware,
    MetricsMiddleware,
    ValidationMiddleware,
    store_error_handler,
)
from .metrics import Metrics
from .health import HealthChecker
from .services.punch_service import PunchService, get_punch_service

VERSION = "0.1.0"

settings = get_settings()

setup_logging(json_output=settings.LOG_JSON, service_name="punchclock")
logger = get_logger()

metrics = Metrics(service_name="punchclock", version=VERSION)
health_checker = HealthChecker(service_name="punchclock", version=VERSION)

get_punch_service().set_metrics(metrics)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = get_punch_service()
    logger.info(
        "service_starting",
        version=VERSION,
        env=settings.ENV,
        store=type(service.store).__name__,
        references=[r.name for r in service.clock.references],
        skew_tolerance_ms=service.policy.tolerance_ms,
    )
    yield
    logger.info("service_stopping")
    service.store.close()
    metrics.app_up.labels(service="punchclock", version=VERSION).set(0)


app = FastAPI(
    title="Punchclock",
    version=VERSION,
    description="Clock-in/out records timestamped by an authoritative server clock",
    lifespan=lifespan,
)

# Added innermost first: the last one added wraps all the others
app.add_middleware(ValidationMiddleware, max_body_size=settings.MAX_EVENT_SIZE)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(MetricsMiddleware, metrics=metrics)
app.add_middleware(ClockHeadersMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Date", "X-Correlation-ID"],
)

app.add_exception_handler(StoreError, store_error_handler)
app.include_router(router)

metrics_app = make_asgi_app(registry=metrics.registry)
app.mount("/metrics", metrics_app)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "OK"


@app.get("/health")
async def health():
    """
    Liveness check - process is up.

    Returns 200 if service is running.
    """
    logger.debug("health_check_liveness")
    return health_checker.liveness()


@app.get("/health/ready")
async def health_ready(service: PunchService = Depends(get_punch_service)):
    """
    Readiness check.

    Checks:
    - Record store health
    - Clock state (degraded is reported but still ready)
    - Disk space and memory availability

    Returns:
        200: Service is ready to handle traffic
        503: Service is not ready
    """
    logger.debug("health_check_readiness")
    metrics.update_system_metrics()
    result = await health_checker.readiness(service.store, service.clock)
    status_code = 200 if result["status"] == "ready" else 503
    return JSONResponse(result, status_code=status_code)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "punchclock.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        # Date is set by ClockHeadersMiddleware, from the authoritative clock where sampled
        date_header=False,
    )
