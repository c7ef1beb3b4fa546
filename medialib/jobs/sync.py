"""Upload of local blobs and push of metadata to the remote service.

``uploaded_at`` / ``synced_at`` only move forward after the remote call has
succeeded, so a failed attempt is retried simply by calling again.
"""
from flask import current_app

from ..errors import MediaLibraryError, SyncError, UploadError
from ..extensions import db, notifier
from ..models import MODELS
from ..models.base import UploadMixin, utcnow
from ..models.transcription import FINISHED, Transcription
from ..services import storage, web_api
from . import job


def upload(record, force=False):
    if record.is_uploaded and not force:
        return record

    try:
        result = storage.put_blob(record.md5, record.file_path)
    except Exception as e:
        current_app.logger.error('[%s] upload failed: %s', record.id, e)
        raise UploadError(f"{record.MODEL} {record.id} upload failed: {e}") from e

    current_app.logger.debug('[%s] upload result: %s', record.id, result)
    if not result or not result.get('success'):
        raise UploadError(f"{record.MODEL} {record.id} upload failed: {(result or {}).get('data')}")

    record.uploaded_at = utcnow()
    db.session.commit()
    notifier.notify(record.MODEL, record.id, 'update', record.to_dict())
    return record


def sync(record):
    if isinstance(record, Transcription) and record.state != FINISHED:
        return None

    if isinstance(record, UploadMixin) and not record.is_uploaded:
        upload(record)

    try:
        web_api.sync(record.MODEL, record.to_dict())
    except Exception as e:
        current_app.logger.error('[%s] sync failed: %s', record.id, e)
        raise SyncError(f"{record.MODEL} {record.id} sync failed: {e}") from e

    record.mark_synced()
    db.session.commit()
    notifier.notify(record.MODEL, record.id, 'update', record.to_dict())
    return record


def _load(model, record_id):
    record = db.session.get(MODELS[model], record_id)
    if record is None:
        current_app.logger.warning('%s %s vanished before background sync', model, record_id)
    return record


@job
def sync_record(model, record_id):
    """Queue entrypoint: best-effort sync; failures are logged and left for a retry."""
    record = _load(model, record_id)
    if record is None:
        return False
    try:
        return sync(record) is not None
    except MediaLibraryError as e:
        db.session.rollback()
        current_app.logger.warning('background sync of %s %s failed: %s', model, record_id, e)
        return False


@job
def upload_record(model, record_id, force=False):
    record = _load(model, record_id)
    if record is None:
        return False
    try:
        upload(record, force=force)
        return True
    except MediaLibraryError as e:
        db.session.rollback()
        current_app.logger.warning('background upload of %s %s failed: %s', model, record_id, e)
        notifier.error(str(e))
        return False
