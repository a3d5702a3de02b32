"""Gunicorn configuration for the GeoPackage conformance report service."""

import os

# Worker class: uvicorn ASGI worker
worker_class = "uvicorn.workers.UvicornWorker"

# Number of worker processes
workers = int(os.environ.get("GPKGCHECK_WORKERS", "2"))

# Bind address (localhost only, behind a reverse proxy)
bind = f"127.0.0.1:{os.environ.get('GPKGCHECK_PORT', '8000')}"

# Each worker opens the package read-only on every request
preload_app = False

# Worker timeout (seconds); a full report runs many queries, each under
# GPKGCHECK_QUERY_TIMEOUT
timeout = 300

# Logging
accesslog = "-"  # stdout
loglevel = os.environ.get("GPKGCHECK_LOG_LEVEL", "info")
