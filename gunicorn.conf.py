"""
Gunicorn WSGI Server Configuration

Rate-limiter state and the catalog snapshot live in process memory, so the
portal runs as a single worker process serving requests from a thread pool.
"""

import os

# =============================================================================
# SERVER SOCKET CONFIGURATION
# =============================================================================

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# =============================================================================
# WORKER PROCESS CONFIGURATION
# =============================================================================

# One process; limiter windows are not shared across processes
workers = 1
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", "8"))

# No max_requests: the worker is never recycled, since limiter windows and
# animals added through the form live in its memory

# =============================================================================
# TIMEOUT CONFIGURATION
# =============================================================================

timeout = 120
keepalive = 5
graceful_timeout = 30

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
capture_output = True

proc_name = "zoo-portal"


def on_starting(server):
    server.log.info("Zoo portal starting with %d threads", threads)


def worker_int(worker):
    worker.log.info("Worker %s shutting down gracefully", worker.pid)
