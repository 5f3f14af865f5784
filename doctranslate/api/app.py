"""Translation API - FastAPI application.

Usage:
    uvicorn doctranslate.api.app:create_default_app --factory --reload

    # Or with custom port
    uvicorn doctranslate.api.app:create_default_app --factory --port 8080
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from doctranslate.api.routes import router
from doctranslate.errors import TranslationError
from doctranslate.events import BroadcastEventSink
from doctranslate.orchestrator import TranslationOrchestrator
from doctranslate.sessions import SessionService
from doctranslate.storage import TranslationDB
from doctranslate.templates import TemplateFormatError, TemplateStore
from doctranslate.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: TranslationOrchestrator,
    sessions: SessionService | None = None,
    templates: TemplateStore | None = None,
) -> FastAPI:
    """Build the API around existing services.

    The SSE endpoint is served only when the orchestrator reports to a
    BroadcastEventSink.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Starting translation API...")
        yield
        await orchestrator.aclose()
        logger.info("👋 Translation API stopped")

    app = FastAPI(
        title="doctranslate",
        description="Chunked document translation with pause, resume and retry",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.orchestrator = orchestrator
    app.state.sessions = sessions or orchestrator.sessions
    app.state.templates = templates or orchestrator.templates
    app.state.broadcaster = (
        orchestrator.events if isinstance(orchestrator.events, BroadcastEventSink) else None
    )

    @app.exception_handler(TranslationError)
    async def translation_error_handler(request: Request, exc: TranslationError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(TemplateFormatError)
    async def template_format_error_handler(request: Request, exc: TemplateFormatError):
        return JSONResponse(status_code=400, content={"detail": str(exc), "kind": exc.kind})

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "service": "doctranslate"}

    app.include_router(router)
    return app


def create_default_app() -> FastAPI:
    """Build the app from environment configuration (for uvicorn --factory)."""
    setup_logging()
    sessions = SessionService(TranslationDB())
    orchestrator = TranslationOrchestrator(
        sessions,
        TemplateStore(),
        events=BroadcastEventSink(),
    )
    return create_app(orchestrator)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "doctranslate.api.app:create_default_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
