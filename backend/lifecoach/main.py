"""Main FastAPI application for the LifeCoach assistant."""
from fastapi import FastAPI, Request

from lifecoach.api.routes.chat import router as chat_router
from lifecoach.api.routes.insights import router as insights_router
from lifecoach.core.config import settings
from lifecoach.core.logging import configure_logging
from lifecoach.core.middleware import RequestIDMiddleware
from lifecoach.observability.client import flush_opik, init_opik
from lifecoach.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(chat_router)
app.include_router(insights_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.on_event("shutdown")
async def shutdown_observability() -> None:
    """Flush buffered traces before the worker exits."""
    flush_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
