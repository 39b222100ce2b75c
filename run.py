"""
Run script for starting the permit intake server.

This script configures and starts the FastAPI server that serves the HTTP
API, the mobile live view and the Twilio media stream endpoint.

Usage:
    python run.py [--port PORT] [--host HOST]
"""

import argparse
import os

import uvicorn

from permit_intake.config.logging_config import configure_logging
from permit_intake.config.settings import get_settings

# Configure logging
logger = configure_logging()


def parse_args():
    """Parse command line arguments."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Start the permit intake server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    args = parse_args()
    settings = get_settings()

    # Voice calls need the agent; the web form and live view do not
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set - inbound calls will be answered with an apology")
    if not settings.twilio_configured:
        logger.warning("Twilio credentials not set - SMS links will only be logged")
    if not settings.ably_api_key:
        logger.warning("ABLY_API_KEY not set - relay events are delivered in-process only")

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")

    uvicorn.run(
        "permit_intake.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
