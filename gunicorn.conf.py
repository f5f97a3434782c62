"""
Production Server Configuration

Run the Custom Dimensions API with Uvicorn workers under Gunicorn.

Slot allocation is serialized per process; across workers the database
unique constraint on (idsite, scope, index) rejects duplicate slots.
"""

import multiprocessing
import os

from custom_dimensions.config import get_settings

_settings = get_settings()

# Server socket
bind = os.getenv("BIND", f"{_settings.api_host}:{_settings.api_port}")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
timeout = 60
keepalive = 5
graceful_timeout = 30

proc_name = _settings.app_name

# Logging
errorlog = "-"
loglevel = _settings.monitoring.log_level.lower()
accesslog = None  # RequestLoggingMiddleware logs every request


def post_fork(server, worker):
    """Each worker configures structlog for itself."""
    from custom_dimensions.config.logging import configure_logging
    configure_logging()
