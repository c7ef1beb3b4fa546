import logging

import click
from flask import Flask, jsonify

from .errors import (
    AssessmentError, DownloadError, DuplicateContentError, IngestionError, InvalidTargetTypeError,
    MediaLibraryError, NotFoundError, SyncError, TranscriptionError, UploadError,
)
from .extensions import db, migrate, rq, notifier, downloader

ERROR_STATUS = (
    (NotFoundError, 404),
    (DuplicateContentError, 409),
    (InvalidTargetTypeError, 400),
    (IngestionError, 400),
    (DownloadError, 502),
    (TranscriptionError, 502),
    (UploadError, 502),
    (SyncError, 502),
    (AssessmentError, 502),
)


def _status_for(error):
    for cls, status in ERROR_STATUS:
        if isinstance(error, cls):
            return status
    return 500


def create_app(config_object='config.Config', **overrides):
    """App factory: wires the database, job queue, event sinks and JSON API."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)
    rq.init_app(app)
    notifier.init_app(app)
    downloader.init_app(app)

    from . import models  # noqa: F401  register tables on db.metadata

    from .api.assets import audios_bp, videos_bp
    from .api.recordings import bp as recordings_bp
    from .api.transcriptions import bp as transcriptions_bp
    from .api.downloads import bp as downloads_bp
    app.register_blueprint(audios_bp, url_prefix="/api/audios")
    app.register_blueprint(videos_bp, url_prefix="/api/videos")
    app.register_blueprint(recordings_bp, url_prefix="/api/recordings")
    app.register_blueprint(transcriptions_bp, url_prefix="/api/transcriptions")
    app.register_blueprint(downloads_bp, url_prefix="/api/downloads")

    @app.errorhandler(MediaLibraryError)
    def handle_library_error(e):
        return jsonify({"error": str(e), "type": type(e).__name__}), _status_for(e)

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        return jsonify({"error": str(e), "type": "ValueError"}), 400

    @app.cli.command("init-db")
    def init_db():
        """Create tables directly (development; migrations own the schema otherwise)."""
        db.create_all()
        click.echo("database initialized")

    @app.cli.command("reset-stale-transcriptions")
    @click.option("--timeout", type=int, default=None, help="seconds a row may stay processing")
    def reset_stale_transcriptions(timeout):
        from .jobs.transcribe import reset_stale
        click.echo(f"reset {reset_stale(timeout)} transcription(s)")

    return app
