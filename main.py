"""Main application entry point for the draw analysis system."""

import logging
import sys

import structlog
import uvicorn

from config.settings import settings
from config.database import init_database, check_database_connection


def setup_logging():
    """Setup structured logging configuration."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def main():
    """Main application entry point."""
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting draw analysis system")
    logger.info(f"Log level: {settings.log_level}")

    from api.routes import app
    from utils.scheduler import setup_scheduler

    scheduler = None
    try:
        logger.info("Checking database connection...")
        if not check_database_connection():
            logger.error("Database connection failed. Please check your configuration.")
            sys.exit(1)

        logger.info("Initializing database...")
        init_database()

        scheduler = setup_scheduler()

        logger.info(f"Starting API server on {settings.api_host}:{settings.api_port}")
        uvicorn.run(
            "api.routes:app" if settings.api_reload else app,
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.api_reload,
            log_level=settings.log_level.lower(),
            access_log=True
        )
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        if scheduler is not None:
            logger.info("Shutting down scheduler...")
            scheduler.stop()
        logger.info("Application shutdown complete")


if __name__ == "__main__":
    main()
