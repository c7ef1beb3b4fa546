from datetime import timedelta

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis import Redis
from rq import Queue
from flask import current_app

from .services.notifier import Notifier
from .services.downloader import Downloader

# kwargs meant for RQ itself, never for the job function
RQ_KEYS = {'job_timeout', 'timeout', 'at_front', 'depends_on', 'result_ttl', 'ttl', 'meta', 'description', 'job_id'}


class RQWrapper:
    """Background task queue.

    Jobs go to RQ when Redis is reachable. With RQ_SYNC set, or when Redis
    cannot be reached, the job runs inline and its return value is handed
    back, so callers (and tests) observe completion deterministically.
    """

    def __init__(self):
        self.redis = None
        self.queue = None

    def init_app(self, app):
        self.redis = None
        self.queue = None
        if app.config.get('RQ_SYNC'):
            return
        try:
            self.redis = Redis.from_url(app.config.get("REDIS_URL"))
            self.redis.ping()
            self.queue = Queue("default", connection=self.redis)
        except Exception:
            # no redis server on this machine: run jobs synchronously
            app.logger.warning('Redis/RQ init failed, falling back to sync execution')
            self.redis = None
            self.queue = None

    @property
    def is_async(self):
        return self.queue is not None

    def _run_inline(self, func, args, kwargs):
        safe_kwargs = {k: v for k, v in kwargs.items() if k not in RQ_KEYS}
        try:
            return func(*args, **safe_kwargs)
        except Exception:
            # a background job must never fail the request that scheduled it
            current_app.logger.exception('Synchronous execution of %s failed', getattr(func, '__name__', func))
            return None

    def enqueue(self, func, *args, **kwargs):
        if not self.queue:
            return self._run_inline(func, args, kwargs)
        try:
            return self.queue.enqueue(func, *args, **kwargs)
        except Exception:
            current_app.logger.exception('RQ enqueue failed, falling back to sync execution')
            return self._run_inline(func, args, kwargs)

    def enqueue_in(self, seconds, func, *args, **kwargs):
        """Schedule ``func`` after a delay (needs a worker started with the scheduler)."""
        if not self.queue or not seconds:
            return self.enqueue(func, *args, **kwargs)
        try:
            return self.queue.enqueue_in(timedelta(seconds=seconds), func, *args, **kwargs)
        except Exception:
            current_app.logger.exception('RQ enqueue_in failed, falling back to sync execution')
            return self._run_inline(func, args, kwargs)


db = SQLAlchemy()
migrate = Migrate()
rq = RQWrapper()
notifier = Notifier()
downloader = Downloader(on_state=lambda event: notifier.emit('download-on-state', event))
