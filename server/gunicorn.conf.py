"""Gunicorn configuration for production deployment.

Bind address, worker count and log level come from the same Settings the
app reads, so .env drives both.

Usage:
    gunicorn main:app -c gunicorn.conf.py
"""
import os
import multiprocessing

from core.config import Settings

settings = Settings()


def worker_count(settings: Settings, cpu_count: int) -> int:
    """Workers for this deployment.

    Without Redis the cache lives in SQLite or process memory, neither of
    which is shared safely between workers, so only Redis deployments scale out.
    """
    if not settings.redis_enabled:
        return 1
    if settings.workers > 1:
        return settings.workers
    return cpu_count * 2 + 1


bind = f"{settings.host}:{settings.port}"

workers = worker_count(settings, multiprocessing.cpu_count())
worker_class = "uvicorn.workers.UvicornWorker"

# Request timeout must outlast the slowest collaborator call
timeout = max(int(os.getenv("GUNICORN_TIMEOUT", "30")),
              int(settings.store_timeout + settings.cache_timeout) + 5)
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

accesslog = None if settings.debug else "-"
errorlog = "-"
loglevel = settings.log_level.lower()

proc_name = "message-service"

preload_app = not settings.debug
