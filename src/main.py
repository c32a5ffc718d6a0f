"""Main FastAPI application for the playground sandbox orchestrator."""

# Standard library imports
from contextlib import asynccontextmanager

# Third-party imports
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Local application imports
from .api import health, playground, preview
from .config import settings
from .dependencies.services import get_orchestrator
from .models.errors import PlaygroundException
from .utils.error_handlers import (
    playground_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from .utils.logging import setup_logging
from .utils.shutdown import setup_graceful_shutdown, shutdown_handler

# Setup logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting playground sandbox API", version="1.0.0")

    if settings.api_debug:
        logger.warning("Debug mode is enabled - disable in production")

    orchestrator = get_orchestrator()
    app.state.orchestrator = orchestrator

    # Host termination tears every sandbox down before the process exits
    shutdown_handler.add_callback(orchestrator.stop)
    shutdown_handler.add_callback(preview.close_http_client)
    setup_graceful_shutdown()

    try:
        available = await orchestrator.start()
        logger.info(
            "Playground sandbox API startup completed",
            mode="container" if available else "simulation",
        )
    except Exception as e:
        logger.error("Sandbox orchestrator startup failed", error=str(e))

    yield

    logger.info("Shutting down playground sandbox API")
    try:
        await shutdown_handler.shutdown()
    except Exception as e:
        logger.error("Error during graceful shutdown", error=str(e))

    logger.info("Playground sandbox API shutdown completed")


app = FastAPI(
    title="Playground Sandbox API",
    description="Per-session container sandboxes for the interactive playground",
    version="1.0.0",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    debug=settings.api_debug,
    lifespan=lifespan,
)

if settings.enable_cors:
    origins = settings.cors_origins if settings.cors_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    logger.info("CORS enabled", origins=origins)

# Register global error handlers
app.add_exception_handler(PlaygroundException, playground_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health.router, tags=["health"])
app.include_router(playground.router)
app.include_router(preview.router)


def run_server():
    logger.info(f"Starting HTTP server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
        access_log=settings.enable_access_logs,
        timeout_keep_alive=120,
    )


if __name__ == "__main__":
    run_server()
