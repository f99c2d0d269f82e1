"""Main FastAPI application for the CropCare backend."""
from fastapi import FastAPI

from cropcare.api.routes.jobs import router as jobs_router
from cropcare.api.routes.notifications import router as notifications_router
from cropcare.api.routes.plans import router as plans_router
from cropcare.api.routes.tasks import router as tasks_router
from cropcare.core.config import settings
from cropcare.core.errors import register_error_handlers
from cropcare.core.logging import configure_logging
from cropcare.core.middleware import RequestContextMiddleware
from cropcare.observability.client import init_opik
from cropcare.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestContextMiddleware)
register_error_handlers(app)
app.include_router(plans_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check() -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}):
        return {"status": "ok"}
