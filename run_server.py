#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    
    Or with Gunicorn:
    gunicorn custom_dimensions.main:app -c gunicorn.conf.py
"""

import argparse
import os
import subprocess

import structlog
import uvicorn

from custom_dimensions.config import get_settings
from custom_dimensions.config.logging import configure_logging

logger = structlog.get_logger(__name__)


def run_dev_server(port: int) -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        "custom_dimensions.main:app",
        host="127.0.0.1",
        port=port,
        reload=True,
        reload_dirs=["custom_dimensions"],
        log_level="debug",
    )


def run_prod_server(port: int) -> None:
    """Run production server with Uvicorn directly."""
    settings = get_settings()
    uvicorn.run(
        "custom_dimensions.main:app",
        host=settings.api_host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=settings.monitoring.log_level.lower(),
        access_log=False,
        proxy_headers=True,
        server_header=False,
    )


def run_gunicorn() -> None:
    """Run with Gunicorn (recommended for production)."""
    subprocess.run(["gunicorn", "custom_dimensions.main:app", "-c", "gunicorn.conf.py"], check=True)


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Custom Dimensions API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")
    args = parser.parse_args()
    
    configure_logging()
    
    if args.dev:
        logger.info("Starting development server", port=args.port)
        run_dev_server(args.port)
    elif args.gunicorn:
        logger.info("Starting production server with Gunicorn")
        run_gunicorn()
    else:
        logger.info("Starting production server with Uvicorn", port=args.port)
        run_prod_server(args.port)


if __name__ == "__main__":
    main()
