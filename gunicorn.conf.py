"""
Gunicorn configuration.

Run with: gunicorn -c gunicorn.conf.py run:app
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# One process keeps the BigCommerce rate limiter shared by every request;
# threads serve concurrent wizard calls within it.
workers = 1
threads = int(os.getenv('GUNICORN_THREADS', '8'))
worker_class = 'gthread'
timeout = 300  # single-shot /api/migrate can run for minutes
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'coupon-migrator'

preload_app = True
graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting Coupon Migrator...")


def on_exit(server):
    print("[Gunicorn] Coupon Migrator shutting down...")
