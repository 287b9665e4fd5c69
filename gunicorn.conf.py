"""Gunicorn production configuration for the approval API.

Run from backend/:  gunicorn -c ../gunicorn.conf.py app.main:app
"""
import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")
# Each process holds its own DB pool (10 + 20 overflow).
workers = int(os.getenv("WEB_CONCURRENCY", min(multiprocessing.cpu_count() + 1, 8)))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
