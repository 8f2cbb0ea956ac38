"""
Recurring Obligation Timeline Engine API
Main application entry point.

Materializes one timeline per client, obligation, sub-obligation and
recurrence period on a daily/monthly/quarterly/yearly cron schedule, and
exposes scheduler control and manual generation endpoints.
"""

from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from timeline_engine.api.routes import router
from timeline_engine.engine import TimelineEngine
from timeline_engine.utils.config import DEFAULT_API_CONFIG, EngineSettings, load_engine_settings, load_yaml
from timeline_engine.utils.logger import setup_logging

# Load environment variables
load_dotenv(override=True)

# Setup logging
logger = setup_logging()

# Load API configuration
api_config = load_yaml(DEFAULT_API_CONFIG)


def create_app(settings: Optional[EngineSettings] = None, engine: Optional[TimelineEngine] = None) -> FastAPI:
    """
    Build the FastAPI application around one timeline engine.

    Args:
        settings: Engine settings (default: loaded from config/engine_config.yaml)
        engine: Prebuilt engine, mainly for tests
    """
    engine = engine or TimelineEngine(settings or load_engine_settings())

    application = FastAPI(
        title=api_config['api']['title'],
        description=api_config['api']['description'],
        version=api_config['api']['version'],
        docs_url="/docs",
        redoc_url="/redoc"
    )
    application.state.engine = engine

    # Configure CORS
    cors_config = api_config.get('cors', {})
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get('allow_origins', ["*"]),
        allow_credentials=True,
        allow_methods=cors_config.get('allow_methods', ["*"]),
        allow_headers=cors_config.get('allow_headers', ["*"]),
    )

    # Include API routes
    application.include_router(router, prefix=api_config['api']['prefix'])

    @application.on_event("startup")
    async def startup_event():
        """Create the schema and arm the scheduler."""
        logger.info("Starting Timeline Engine API...")
        logger.info(f"API Version: {api_config['api']['version']}")
        engine.startup()
        port = api_config.get('server', {}).get('port', 8000)
        logger.info(f"API available at: http://localhost:{port}")
        logger.info(f"Docs available at: http://localhost:{port}/docs")

    @application.on_event("shutdown")
    async def shutdown_event():
        """Disarm the scheduler."""
        logger.info("Shutting down Timeline Engine API...")
        engine.shutdown()

    @application.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": api_config['api']['title'],
            "version": api_config['api']['version'],
            "description": api_config['api']['description'],
            "docs": "/docs",
            "health": f"{api_config['api']['prefix']}/health"
        }

    return application


app = create_app()
