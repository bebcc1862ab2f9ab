"""
WellnessAI Engagement Engine - FastAPI application.

Main entry point for the engagement API: check-ins, achievements, surveys,
notifications, recognitions and rewards.
"""

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Common library imports
from common.auth import JWTAuth
from common.database import MongoDB
from common.utils import APIException, error_response, success_response

# App-specific imports
from engagement.config import Settings, settings as default_settings
from engagement.context import build_context
from engagement.database.collections import ensure_indexes
from engagement.dependencies import init_auth
from engagement.routers import ALL_ROUTERS
from engagement.services.achievements import install_default_catalog

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
VERSION = "1.0.0"


# =============================================================================
# Application Lifespan
# =============================================================================

def _lifespan_for(settings: Settings, database: MongoDB):

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan context manager.

        Validates configuration, connects to MongoDB, wires the engagement
        context and starts the scheduler. Everything acquired here is released
        on shutdown.
        """
        logging.basicConfig(
            level=settings.LOG_LEVEL.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logger.info("Starting WellnessAI engagement API...")

        settings.validate_required()

        async def on_connect(db):
            await ensure_indexes(db, credit_replay_window_days=settings.CREDIT_REPLAY_WINDOW_DAYS)

        await database.connect(
            uri=settings.MONGODB_URI,
            database_name=settings.MONGODB_DATABASE,
            on_connect=on_connect,
        )

        context = None
        try:
            if settings.SEED_DEFAULT_ACHIEVEMENTS:
                await install_default_catalog(database.db)

            context = build_context(settings, database.db)
            await context.achievements.validate_catalog()

            if settings.JWT_SECRET:
                init_auth(JWTAuth(secret=settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM))
            else:
                logger.warning("JWT_SECRET not set; authenticated routes are unavailable")

            if settings.ENABLE_SCHEDULED_JOBS:
                await context.scheduler.initialize()
            else:
                logger.info("Scheduled jobs disabled (ENABLE_SCHEDULED_JOBS=false)")

            app.state.context = context
            logger.info("WellnessAI engagement API started successfully!")

            yield
        finally:
            logger.info("Shutting down WellnessAI engagement API...")
            if context is not None:
                await context.aclose()
            await database.disconnect()
            logger.info("WellnessAI engagement API shut down complete.")

    return lifespan


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI, settings: Settings) -> None:

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        detail = exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(detail.get("message", "Error"), code=detail.get("code"), details=detail.get("details")),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_response("Validation failed", code="VALIDATION_ERROR", errors=errors),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        if settings.is_production():
            content = error_response("Internal server error", code="INTERNAL_ERROR")
        else:
            content = error_response(
                str(exc) or "Internal server error",
                code="INTERNAL_ERROR",
                details={"traceback": traceback.format_exception(type(exc), exc, exc.__traceback__)},
            )
        return JSONResponse(status_code=500, content=content)


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(settings: Optional[Settings] = None, database: Optional[MongoDB] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to the environment)
        database: Connection manager used by the lifespan
    """
    settings = settings or default_settings
    database = database or MongoDB()

    app = FastAPI(
        title="WellnessAI Engagement API",
        description="Daily check-ins, Happy Coins, achievements, surveys and notifications",
        version=VERSION,
        lifespan=_lifespan_for(settings, database),
        docs_url="/docs" if settings.is_development() else None,
        redoc_url="/redoc" if settings.is_development() else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    for router in ALL_ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        """Liveness probe."""
        return {
            **success_response(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
            "version": VERSION,
        }

    return app


app = create_app()


# =============================================================================
# Run with Uvicorn
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.is_development(),
    )
