"""Media asset registry: the relational side of the library.

Creates, updates and destroys Audio/Video/Recording rows, keeping them
consistent with the content-addressed files on disk and scheduling the
background transcription and sync work that follows a new import.
"""
import os
from urllib.parse import unquote, urlparse

from flask import current_app
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError

from .errors import (
    AssessmentError, DuplicateContentError, IngestionError, InvalidTargetTypeError, NotFoundError,
)
from .extensions import db, downloader, notifier, rq
from .jobs.sync import sync_record
from .jobs.transcribe import transcribe_job
from .models import Audio, PronunciationAssessment, Recording, Video, asset_model
from .models.asset import AUDIO_FORMATS, VIDEO_FORMATS, format_of, generate_id
from .models.recording import TARGET_TYPES
from .services import assessment, probe, storage, web_api

KIND_MODELS = {
    "audio": Audio,
    "video": Video,
}
EDITABLE_FIELDS = ("name", "description", "cover_url")


def _model_for_kind(kind):
    try:
        return KIND_MODELS[kind]
    except KeyError:
        raise InvalidTargetTypeError(kind) from None


def is_remote(source):
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def kind_of(path):
    """True kind of a media file, decided by its extension alone."""
    fmt = format_of(path)
    if fmt in VIDEO_FORMATS:
        return "video"
    if fmt in AUDIO_FORMATS:
        return "audio"
    raise IngestionError("file format not supported", path)


def _default_name(path):
    base = os.path.splitext(os.path.basename(path))[0]
    return " ".join(w.capitalize() for w in base.replace("_", " ").replace("-", " ").split()) or base


def _notify(record, action):
    notifier.notify(record.MODEL, record.id, action, record.to_dict())


# --- assets -----------------------------------------------------------------

def ingest(source, kind_hint="audio", name=None, description=None, cover_url=None):
    """Import a local path or remote URL into the library.

    ``kind_hint`` is informational only: a video file submitted as audio is
    stored as a Video. Raises DuplicateContentError when the content is
    already in the library. A downloaded source is deleted once imported or
    rejected; a local source is never touched.
    """
    if not is_remote(source):
        return _import(source, source, kind_hint, name, description, cover_url)

    # name after the URL, not the sanitized download file
    name = name or _default_name(unquote(urlparse(source).path)) or None
    file_path = downloader.download(source)
    try:
        return _import(file_path, source, kind_hint, name, description, cover_url)
    finally:
        storage.remove(file_path)


def _import(file_path, source, kind_hint, name, description, cover_url):
    if not os.path.isfile(file_path) or not os.access(file_path, os.R_OK):
        raise IngestionError("file not found", file_path)

    kind = kind_of(file_path)
    if kind != kind_hint:
        current_app.logger.info('%s submitted as %s, importing as %s', file_path, kind_hint, kind)
    model = KIND_MODELS[kind]

    try:
        md5 = storage.hash_file(file_path)
    except OSError as e:
        raise IngestionError(f"failed to read file ({e})", file_path) from e

    existing = model.query.filter_by(md5=md5).first()
    if existing is not None:
        raise DuplicateContentError(model.MODEL, md5, existing_id=existing.id)

    dest_existed = os.path.exists(storage.library_path(model.KIND, md5 + os.path.splitext(file_path)[1]))
    md5, dest = storage.place(file_path, model.KIND, content_hash=md5)

    metadata = {"extname": os.path.splitext(file_path)[1]}
    metadata.update(probe.safe_metadata(dest))

    record = model(
        id=generate_id(current_app.config['USER_ID'], md5),
        source=source,
        md5=md5,
        name=name or _default_name(file_path),
        description=description,
        cover_url=cover_url,
        media_metadata=metadata,
    )
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.error('failed to save %s %s: %s', model.MODEL, md5, e)
        # only undo a copy this call made; an existing file belongs to the existing row
        if not dest_existed:
            storage.remove(dest)
        raise DuplicateContentError(model.MODEL, md5) from e

    current_app.logger.info('generated ID: %s', record.id)
    _notify(record, "create")

    rq.enqueue_in(current_app.config.get('TRANSCRIBE_DEBOUNCE_SECONDS', 0.5), transcribe_job, record.MODEL, record.id)
    rq.enqueue(sync_record, record.MODEL, record.id)
    return record


def get(kind, id):
    model = _model_for_kind(kind)
    record = db.session.get(model, id)
    if record is None:
        raise NotFoundError(model.MODEL, id)
    return record


def find_one(kind, id):
    """Fetch for display; an unsynced asset gets a background sync."""
    record = get(kind, id)
    if not record.is_synced:
        rq.enqueue(sync_record, record.MODEL, record.id)
    return record


def find_all(kind, limit=50, offset=0):
    model = _model_for_kind(kind)
    return model.query.order_by(model.created_at.desc()).offset(offset).limit(limit).all()


def update(kind, id, **fields):
    record = get(kind, id)
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"cannot update {', '.join(sorted(unknown))}")
    for key, value in fields.items():
        setattr(record, key, value)
    db.session.commit()
    _notify(record, "update")
    return record


def destroy(kind, id):
    """Delete the row, then its library file. The remote copy is kept."""
    record = get(kind, id)
    file_path = record.file_path
    payload = record.to_dict(include_transcription=False)
    db.session.delete(record)
    db.session.commit()
    notifier.notify(record.MODEL, id, "destroy", payload)
    if not storage.remove(file_path):
        current_app.logger.warning('[%s] library file %s was not removed', id, file_path)
    return payload


def transcribe(kind, id):
    record = get(kind, id)
    return rq.enqueue(transcribe_job, record.MODEL, record.id)


# --- recordings -------------------------------------------------------------

def _adjust_counters(target_type, target_id, count, duration):
    if target_type not in ("Audio", "Video"):
        return
    model = asset_model(target_type)
    db.session.execute(
        sql_update(model)
        .where(model.id == target_id)
        .values(
            recordings_count=model.recordings_count + count,
            recordings_duration=model.recordings_duration + duration,
        )
        .execution_options(synchronize_session=False)
    )


def create_recording(file_path, target_type, target_id, duration, reference_id=None, reference_text=None):
    if target_type not in TARGET_TYPES:
        raise InvalidTargetTypeError(target_type)
    if target_type in ("Audio", "Video") and db.session.get(asset_model(target_type), target_id) is None:
        raise NotFoundError(target_type, target_id)
    duration = int(duration or 0)
    if duration < 0:
        raise ValueError("duration must not be negative")

    try:
        md5 = storage.hash_file(file_path)
    except OSError as e:
        raise IngestionError(f"failed to read file ({e})", file_path) from e
    if Recording.query.filter_by(md5=md5).first() is not None:
        raise DuplicateContentError(Recording.MODEL, md5)
    md5, dest = storage.place(file_path, "recordings", content_hash=md5)

    recording = Recording(
        target_id=target_id,
        target_type=target_type,
        md5=md5,
        filename=os.path.basename(dest),
        duration=duration,
        reference_id=reference_id,
        reference_text=reference_text,
    )
    db.session.add(recording)
    # row and counters commit together
    _adjust_counters(target_type, target_id, 1, duration)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.error('failed to save recording %s: %s', md5, e)
        raise DuplicateContentError(Recording.MODEL, md5) from e

    _notify(recording, "create")
    if target_type in ("Audio", "Video"):
        parent = db.session.get(asset_model(target_type), target_id)
        if parent is not None:
            db.session.refresh(parent)
            _notify(parent, "update")
    rq.enqueue(sync_record, Recording.MODEL, recording.id)
    return recording


def get_recording(id):
    recording = db.session.get(Recording, id)
    if recording is None:
        raise NotFoundError(Recording.MODEL, id)
    return recording


def destroy_recording(id):
    recording = get_recording(id)
    file_path = recording.file_path
    payload = recording.to_dict()
    pa = recording.pronunciation_assessment
    if pa is not None:
        db.session.delete(pa)
    db.session.delete(recording)
    _adjust_counters(recording.target_type, recording.target_id, -1, -recording.duration)
    db.session.commit()

    notifier.notify(Recording.MODEL, id, "destroy", payload)
    storage.remove(file_path)
    return payload


def assess_recording(id):
    """Pronunciation assessment of a recording against its reference text.

    An existing assessment is returned as is unless the reference text it was
    computed against has changed since.
    """
    recording = get_recording(id)
    existing = recording.pronunciation_assessment
    if existing is not None and existing.reference_text == recording.reference_text:
        return existing

    try:
        creds = web_api.generate_speech_token()
        result = assessment.pronunciation_assessment(
            recording.file_path, recording.reference_text, creds['token'], creds['region'],
        )
    except Exception as e:
        current_app.logger.error('[%s] pronunciation assessment failed: %s', id, e)
        raise AssessmentError(f"Assessment of recording {id} failed: {e}") from e

    content = result.get('contentAssessmentResult') or {}
    if existing is not None:
        db.session.delete(existing)
        db.session.flush()
    pa = PronunciationAssessment(
        target_id=recording.id,
        target_type=Recording.MODEL,
        accuracy_score=result['accuracyScore'],
        completeness_score=result['completenessScore'],
        fluency_score=result['fluencyScore'],
        pronunciation_score=result['pronunciationScore'],
        prosody_score=result.get('prosodyScore'),
        grammar_score=content.get('grammarScore'),
        vocabulary_score=content.get('vocabularyScore'),
        topic_score=content.get('topicScore'),
        reference_text=recording.reference_text,
        result=result.get('detailResult'),
    )
    db.session.add(pa)
    db.session.commit()
    _notify(pa, "create")
    rq.enqueue(sync_record, PronunciationAssessment.MODEL, pa.id)
    return pa
