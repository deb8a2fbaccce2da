"""
FastAPI Application Factory
===========================

Reference host for the OAuth flow engine.

Routers:
    - /oauth/*  : Login, callback, logout, provider list, current user
    - /health   : Health check endpoint

Running the Service:
    Development:
        uvicorn socialauth.main:create_app --factory --reload --host 0.0.0.0 --port 8000

    With custom log level:
        LOG_LEVEL=DEBUG uvicorn socialauth.main:create_app --factory --reload
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from socialauth.auth.routes import auth_router
from socialauth.auth.session import SessionManager
from socialauth.config import Settings, get_settings, validate_configuration
from socialauth.oauth.flow import OAuthFlow

logger = logging.getLogger("socialauth.main")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the configuration report on startup.
    """
    settings: Settings = app.state.settings
    report = validate_configuration(settings)

    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    logger.info(
        "socialauth service started",
        extra={"configured_providers": app.state.oauth_flow.registry.list_configured()},
    )

    yield

    logger.info("socialauth service shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    flow: Optional[OAuthFlow] = None,
    session_manager: Optional[SessionManager] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        flow: Pre-wired OAuth flow; built from settings when omitted
        session_manager: Session manager; built from settings when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="socialauth",
        description="OAuth 2.0 social login for web applications",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.oauth_flow = flow or OAuthFlow.from_settings(settings)
    app.state.session_manager = session_manager or SessionManager.from_settings(settings)

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(auth_router)

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {
            "status": "ok",
            "service": "socialauth",
            "version": "1.0.0",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a response without internal detail.
        """
        logger.error(
            f"Unhandled exception: {type(exc).__name__}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            }
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "socialauth.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
    )
