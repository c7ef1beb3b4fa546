"""Run an RQ worker inside the Flask app context.

Usage:
  export REDIS_URL=redis://localhost:6379/0
  python scripts/run_rq_worker.py

Transcriptions left in ``processing`` by a worker that died are reset to
``pending`` before the worker starts taking jobs. The scheduler is enabled so
debounced transcription jobs (``enqueue_in``) are picked up.
"""

import sys
import os

# Ensure project root is on sys.path when running from scripts/ or other cwd
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
  sys.path.insert(0, ROOT)

from medialib import create_app
from medialib.jobs.transcribe import reset_stale
import redis
from rq import Worker, Queue


def main():
  app = create_app()
  redis_url = app.config.get('REDIS_URL') or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
  conn = redis.from_url(redis_url)
  with app.app_context():
    reset_stale()
    q = Queue('default', connection=conn)
    worker = Worker([q], connection=conn)
    print('RQ worker starting (pid', os.getpid(), ')')
    try:
      worker.work(burst=False, with_scheduler=True, logging_level=app.config.get('LOG_LEVEL', 'INFO'))
    finally:
      print('RQ worker exiting (pid', os.getpid(), ')')


if __name__ == '__main__':
  main()
