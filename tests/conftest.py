import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from medialib import create_app
from medialib.extensions import db, downloader, notifier


def fake_words(text, start=0.0, step=0.4):
    words = []
    t = start
    for w in text.split():
        words.append({'word': w, 'start': t, 'end': t + step - 0.05})
        t += step
    return words


@pytest.fixture
def app(tmp_path):
    app = create_app(
        'config.TestConfig',
        LIBRARY_DIR=str(tmp_path / 'library'),
        DOWNLOAD_DIR=str(tmp_path / 'downloads'),
        REMOTE_STORAGE_DIR=str(tmp_path / 'remote'),
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    downloader.clear()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def fake_ffprobe(monkeypatch):
    def run_ffprobe(path):
        return {
            'format': {'format_name': 'mp3', 'duration': '3.5', 'size': str(os.path.getsize(path))},
            'streams': [{'codec_type': 'audio', 'codec_name': 'mp3', 'sample_rate': '44100', 'channels': 2}],
        }
    monkeypatch.setattr('medialib.services.probe.run_ffprobe', run_ffprobe)


@pytest.fixture(autouse=True)
def synced(monkeypatch):
    """Records every payload pushed to the remote API."""
    calls = []

    def fake_sync(model, record):
        calls.append((model, record['id']))
        return {'id': record['id']}

    monkeypatch.setattr('medialib.services.web_api.sync', fake_sync)
    return calls


@pytest.fixture(autouse=True)
def stt(monkeypatch):
    """Fake speech-to-text; set ``stt.text`` or ``stt.error`` to steer it."""
    class FakeSTT:
        text = 'Hello world. How are you?'
        error = None
        calls = 0
        hook = None

        def __call__(self, file_path, force=False, prompt=None, language=None):
            self.calls += 1
            if self.hook:
                self.hook()
            if self.error:
                raise self.error
            return {'engine': 'whisper', 'model': 'whisper-1', 'words': fake_words(self.text)}

    fake = FakeSTT()
    monkeypatch.setattr('medialib.services.whisper.transcribe', fake)
    return fake


@pytest.fixture
def events():
    received = []

    def observer(channel, payload):
        received.append((channel, payload))

    notifier.subscribe(observer)
    yield received
    notifier.unsubscribe(observer)


@pytest.fixture
def media(tmp_path):
    """Write a fake media file and return its path."""
    src = tmp_path / 'src'
    src.mkdir(exist_ok=True)

    def make(name, content=None):
        path = src / name
        path.write_bytes(content if content is not None else f'fake media bytes of {name}'.encode())
        return str(path)
    return make


@pytest.fixture
def threaded_app(tmp_path):
    """App on a file-backed SQLite database, so worker threads share state."""
    app = create_app(
        'config.TestConfig',
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'library.db'}",
        SQLALCHEMY_ENGINE_OPTIONS={'connect_args': {'timeout': 30, 'check_same_thread': False}},
        LIBRARY_DIR=str(tmp_path / 'library'),
        DOWNLOAD_DIR=str(tmp_path / 'downloads'),
        REMOTE_STORAGE_DIR=str(tmp_path / 'remote'),
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    downloader.clear()

