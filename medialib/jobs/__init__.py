from functools import wraps

from flask import has_app_context


def job(func):
    """Make a job entrypoint runnable from an RQ worker.

    Inline execution already happens inside the caller's app context; a worker
    process gets a fresh app so ``current_app`` and the db session work.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if has_app_context():
            return func(*args, **kwargs)
        # lazy import to avoid circular imports at module import time
        from medialib import create_app
        app = create_app()
        with app.app_context():
            return func(*args, **kwargs)
    return wrapper
