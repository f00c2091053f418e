"""
Gunicorn configuration for the Budget Reports API.

Runs budget_reports.main:app with Uvicorn workers.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
# Reports wait on several lookups, each bounded by REPORT_LOOKUP_TIMEOUT_SECONDS
timeout = 60
keepalive = 5
graceful_timeout = 30

proc_name = "budget-reports-api"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
