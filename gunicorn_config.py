"""
Gunicorn configuration for the schoolportal backend

Usage:
    gunicorn -c gunicorn_config.py schoolportal.wsgi:application

Socket, worker count and log paths can be overridden from the environment
(.env is read through python-decouple, like the Django settings).
"""

import multiprocessing

from decouple import config

# Server socket
bind = config('GUNICORN_BIND', default="unix:/var/run/gunicorn/schoolportal.sock")

# Worker processes. Gateway calls block for up to PAYMENT_GATEWAY_TIMEOUT seconds
workers = config('GUNICORN_WORKERS', default=multiprocessing.cpu_count() * 2 + 1, cast=int)
worker_class = "sync"
timeout = config('GUNICORN_TIMEOUT', default=60, cast=int)
keepalive = 2

# Logging
accesslog = config('GUNICORN_ACCESS_LOG', default="/var/log/gunicorn/schoolportal_access.log")
errorlog = config('GUNICORN_ERROR_LOG', default="/var/log/gunicorn/schoolportal_error.log")
loglevel = config('GUNICORN_LOG_LEVEL', default="info")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(a)s" %(D)s'

proc_name = "schoolportal"

daemon = False
pidfile = "/var/run/gunicorn/schoolportal.pid"
umask = 0

preload_app = True

max_requests = 1000
max_requests_jitter = 50

graceful_timeout = 30
