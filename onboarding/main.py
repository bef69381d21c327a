"""
Main application entry point for the onboarding assessment service.

This module serves as the central entry point for the FastAPI application,
registering the assessment module and shared middleware.

Usage:
    - Direct: python -m onboarding.main
    - ASGI server: uvicorn onboarding.main:app
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from onboarding.api import (
    create_api_router,
    onboarding_error_handler,
    register_assessment_module,
    validation_exception_handler,
)
from onboarding.assessments.router import router as assessments_router
from onboarding.assessments.services import AssessmentServices, Clock
from onboarding.common.error_handling import OnboardingError
from onboarding.common.logger import app_logger
from onboarding.config import settings
from onboarding.database.init_db import (
    close_database, create_schema, get_session_factory, initialize_database
)

# Setup module logger
logger = app_logger.getChild("main")

register_assessment_module("assessments", assessments_router)


def create_app(database_url: Optional[str] = None, clock: Optional[Clock] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        database_url: Database to bind to (defaults to settings)
        clock: Clock shared by the assessment services (defaults to UTC now)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application startup sequence initiated.")
        await initialize_database(database_url)
        if settings.CREATE_SCHEMA_ON_STARTUP:
            await create_schema()
        app.state.services = AssessmentServices(get_session_factory(), clock)
        logger.info("Application startup complete")

        yield

        try:
            await close_database()
            logger.info("Application shutdown complete")
        except Exception as e:
            logger.error(f"Error during application shutdown: {str(e)}")
            raise

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Onboarding test attempts, autosave, scoring and evaluation",
        version="1.0.0",
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OnboardingError, onboarding_error_handler)

    app.include_router(create_api_router(), prefix=settings.API_PREFIX)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": f"Welcome to {settings.PROJECT_NAME}"}

    logger.info(f"Application initialized with {len(app.routes)} routes")
    return app


app = create_app()

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    # Get configuration from environment or use defaults
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "onboarding.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level="info"
    )
