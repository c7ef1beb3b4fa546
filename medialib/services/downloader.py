"""Streaming downloader with progress events and cancellation.

Every transfer is tracked by file name. Progress is reported as
``{name, state, receivedBytes, totalBytes}`` where state is one of
progressing, completed, interrupted or cancelled. A transfer that does not
complete never leaves a partial file behind.
"""
import hashlib
import logging
import mimetypes
import os
import re
import threading
from urllib.parse import unquote, urlparse

import requests
from werkzeug.utils import secure_filename

from ..errors import DownloadError

log = logging.getLogger(__name__)

PROGRESSING = "progressing"
COMPLETED = "completed"
INTERRUPTED = "interrupted"
CANCELLED = "cancelled"

_CD_FILENAME = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)


def filename_for(url, response=None):
    """Pick a safe local file name from Content-Disposition or the URL path.

    The extension is split off before sanitizing, since ``secure_filename``
    drops non-ASCII characters and would otherwise eat the dot of a name like
    ``中文.mp3``. An empty stem falls back to a hash of the URL; a missing
    extension is guessed from Content-Type.
    """
    name = None
    if response is not None:
        m = _CD_FILENAME.search(response.headers.get("Content-Disposition") or "")
        if m:
            name = unquote(m.group(1))
    if not name:
        name = os.path.basename(unquote(urlparse(url).path))

    stem, ext = os.path.splitext(name or "")
    ext = secure_filename(ext.lstrip("."))
    if not ext and response is not None:
        content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip()
        ext = (mimetypes.guess_extension(content_type) or "").lstrip(".") if content_type else ""
    stem = secure_filename(stem) or "download-" + hashlib.md5(url.encode("utf-8")).hexdigest()[:12]
    return f"{stem}.{ext}" if ext else stem


class DownloadTask:
    def __init__(self, name, url, save_path, total=0):
        self.name = name
        self.url = url
        self.save_path = save_path
        self.state = PROGRESSING
        self.received = 0
        self.total = total
        self.response = None
        self._cancel = threading.Event()

    @property
    def cancel_requested(self):
        return self._cancel.is_set()

    def cancel(self):
        self._cancel.set()
        # unblock a read that is waiting on the network
        if self.response is not None:
            try:
                self.response.close()
            except Exception:
                log.debug("closing response for %s failed", self.name, exc_info=True)

    def snapshot(self):
        return {
            "name": self.name,
            "state": self.state,
            "receivedBytes": self.received,
            "totalBytes": self.total,
        }


class Downloader:
    def __init__(self, session=None, chunk_size=64 * 1024, on_state=None, download_dir="./downloads", timeout=60):
        self.session = session
        self.chunk_size = chunk_size
        self.on_state = on_state
        self.download_dir = download_dir
        self.timeout = timeout
        self.tasks = {}
        self._lock = threading.Lock()

    def init_app(self, app):
        self.download_dir = app.config.get("DOWNLOAD_DIR", self.download_dir)

    def _session(self):
        if self.session is None:
            self.session = requests.Session()
        return self.session

    def _emit(self, task, callback=None):
        event = task.snapshot()
        for cb in (self.on_state, callback):
            if cb is None:
                continue
            try:
                cb(event)
            except Exception:
                log.exception("download progress observer failed for %s", task.name)

    def _register(self, task):
        with self._lock:
            current = self.tasks.get(task.name)
            if current is not None and current.state == PROGRESSING:
                raise DownloadError(f"{task.name} is already downloading", state=PROGRESSING, url=task.url)
            self.tasks[task.name] = task

    def download(self, url, save_path=None, on_state=None):
        """Fetch ``url`` to ``save_path`` (or the download dir) and return the local path.

        Raises DownloadError with ``state`` set to interrupted or cancelled;
        in both cases the partial file has been removed.
        """
        try:
            response = self._session().get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            log.error("download of %s failed to start: %s", url, e)
            raise DownloadError(f"Failed to download {url}: {e}", state=INTERRUPTED, url=url) from e

        name = filename_for(url, response)
        path = save_path or os.path.join(self.download_dir, name)
        try:
            total = int(response.headers.get("Content-Length") or 0)
        except ValueError:
            total = 0
        task = DownloadTask(name, url, path, total=total)
        task.response = response
        try:
            self._register(task)
        except DownloadError:
            response.close()
            raise

        error = None
        try:
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
            with response, open(path, "wb") as fh:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if task.cancel_requested:
                        break
                    if not chunk:
                        continue
                    fh.write(chunk)
                    task.received += len(chunk)
                    self._emit(task, on_state)
        except (requests.RequestException, OSError, AttributeError, ValueError) as e:
            # AttributeError/ValueError: urllib3 reading from a response closed by cancel()
            error = e

        if task.cancel_requested:
            task.state = CANCELLED
        elif error is not None or (task.total and task.received < task.total):
            task.state = INTERRUPTED
        else:
            task.state = COMPLETED
        task.response = None

        if task.state != COMPLETED:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError:
                log.exception("failed to remove partial download %s", path)
            self._emit(task, on_state)
            log.warning("download %s %s (%s/%s bytes)", name, task.state, task.received, task.total)
            raise DownloadError(f"Failed to download {url}: {task.state}", state=task.state, url=url)

        self._emit(task, on_state)
        log.info("download %s completed (%s bytes) -> %s", name, task.received, path)
        return path

    def cancel(self, name):
        with self._lock:
            task = self.tasks.get(name)
        if task is not None and task.state == PROGRESSING:
            task.cancel()
            return True
        return False

    def cancel_all(self):
        with self._lock:
            tasks = list(self.tasks.values())
        for task in tasks:
            if task.state == PROGRESSING:
                task.cancel()

    def clear(self):
        self.cancel_all()
        with self._lock:
            self.tasks.clear()

    def dashboard(self):
        with self._lock:
            return [t.snapshot() for t in self.tasks.values()]
