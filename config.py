import os
from dotenv import load_dotenv
load_dotenv()


def _truthy(value, default=False):
    if value is None or value == "":
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///medialib.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    # run jobs inline instead of enqueueing them (tests, single-process dev)
    RQ_SYNC = _truthy(os.getenv("RQ_SYNC"))

    # library layout: <LIBRARY_DIR>/<USER_ID>/{audios,videos,recordings,cache}
    LIBRARY_DIR = os.getenv("LIBRARY_DIR", "./library")
    USER_ID = os.getenv("USER_ID", "0")
    DOWNLOAD_DIR = os.getenv("DOWNLOAD_DIR", "./downloads")

    # remote blob storage
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    REMOTE_STORAGE_DIR = os.getenv("REMOTE_STORAGE_DIR", "./remote-storage")
    S3_ENDPOINT = os.getenv("S3_ENDPOINT")
    S3_REGION = os.getenv("S3_REGION")
    S3_BUCKET = os.getenv("S3_BUCKET")
    S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")
    S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")

    # remote API
    WEB_API_URL = os.getenv("WEB_API_URL", "https://enjoy.bot")
    WEB_API_TOKEN = os.getenv("WEB_API_TOKEN")
    WEB_API_TIMEOUT = float(os.getenv("WEB_API_TIMEOUT", "30"))

    # speech-to-text
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-1")
    WHISPER_PROMPT = os.getenv("WHISPER_PROMPT", "Hello! Welcome to listen to this audio.")
    TRANSCRIPT_SEGMENT_MAX_CHARS = int(os.getenv("TRANSCRIPT_SEGMENT_MAX_CHARS", "120"))
    TRANSCRIBE_DEBOUNCE_SECONDS = float(os.getenv("TRANSCRIBE_DEBOUNCE_SECONDS", "0.5"))
    WHISPER_TIMEOUT = int(os.getenv("WHISPER_TIMEOUT", "600"))
    # stale-processing sweep; raised to WHISPER_TIMEOUT + 60 when set lower
    TRANSCRIPTION_TIMEOUT_SECONDS = int(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "900"))

    FFPROBE_PATH = os.getenv("FFPROBE_PATH", "ffprobe")

    # domain event delivery: "local" (in-process observers only) or "redis"
    EVENT_SINK = os.getenv("EVENT_SINK", "local")
    EVENT_CHANNEL = os.getenv("EVENT_CHANNEL", "medialib.events")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RQ_SYNC = True
    STORAGE_BACKEND = "local"
    EVENT_SINK = "local"
    WEB_API_TOKEN = "test-token"
    OPENAI_API_KEY = "test-key"
    TRANSCRIBE_DEBOUNCE_SECONDS = 0
    USER_ID = "24000001"
