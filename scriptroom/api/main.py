"""
FastAPI Application - Script Room Gateway.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from scriptroom import __version__
from scriptroom.config import config
from scriptroom.orchestration.exceptions import OrchestrationError

from .exceptions import APIError, api_error_handler, generic_exception_handler, orchestration_error_handler
from .routes import health_router, project_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info("Starting Script Room API...")
    logger.info("=" * 60)

    config.log_status()

    logger.info("=" * 60)
    logger.info("Server ready! Start a project at POST /api/project/start")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Script Room API...")


def create_app(debug: bool = False) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Script Room API",
        description="A team of AI agents that researches, writes, reviews and voices video scripts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=debug,
    )

    origins = config.server.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(OrchestrationError, orchestration_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(project_router)

    # Audio written by the local voice provider
    voiceover_dir = config.server.voiceover_dir
    voiceover_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/audio", StaticFiles(directory=str(voiceover_dir)), name="audio")
    logger.info(f"Static files mounted: /audio -> {voiceover_dir}")

    return app


app = create_app(debug=config.server.debug)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scriptroom.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
