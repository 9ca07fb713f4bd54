"""
Canonical entry point for aqm_server package.

Usage:
    python -m aqm_server --environment development api
    python -m aqm_server --environment development setup-db
"""

import argparse
import logging
import os
import sys

import uvicorn
from aqm_core.config.environments import get_settings


def setup_logging(config) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return None


def run_api_server(args: argparse.Namespace) -> None:
    """Run the FastAPI server; MQTT ingest starts with it when enabled."""
    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    host = args.host or config.API_HOST
    port = args.port or config.API_PORT
    reload = args.reload and args.environment != "production"

    log.info("Starting API server...")
    log.info("Environment: %s", args.environment)
    log.info("Host: %s", host)
    log.info("Port: %s", port)
    log.info("MQTT ingest: %s", "enabled" if config.MQTT_ENABLED else "disabled")
    log.info("Persistence: %s", "enabled" if config.DATABASE_URL else "disabled")

    uvicorn.run(
        "aqm_server.adapters.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=config.LOG_LEVEL.lower(),
    )
    return None


def setup_database(args: argparse.Namespace) -> None:
    """Create the telemetry tables."""
    from sqlalchemy import create_engine

    from aqm_server.adapters.db.sqlalchemy_models import Base

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    if not config.DATABASE_URL:
        log.error("DATABASE_URL is not set; nothing to set up")
        sys.exit(1)

    log.info("Setting up database for %s environment...", args.environment)
    log.info("Database URL: %s", config.DATABASE_URL)

    engine = create_engine(config.DATABASE_URL, future=True, echo=False)
    Base.metadata.create_all(bind=engine)
    log.info("Database setup completed successfully")
    return None


def main() -> None:
    """Main entry point for aqm_server commands."""
    parser = argparse.ArgumentParser(
        description="Air Quality Monitor - telemetry API and database management"
    )
    parser.add_argument(
        "--environment",
        choices=["production", "development", "testing"],
        default="development",
        help="Environment to run in",
    )
    parser.add_argument(
        "command",
        choices=["api", "setup-db"],
        help="Command to run",
    )
    parser.add_argument("--host", help="Host to bind to (overrides config)")
    parser.add_argument("--port", type=int, help="Port to bind to (overrides config)")
    parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload (development only)"
    )

    args = parser.parse_args()

    # Set environment variable for config
    os.environ["AQM_ENV"] = args.environment

    if args.command == "api":
        run_api_server(args)
    elif args.command == "setup-db":
        setup_database(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
