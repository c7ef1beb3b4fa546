"""Transcription lifecycle: pending -> processing -> finished.

A record in ``processing`` is owned by exactly one attempt; the transition
into it is a conditional UPDATE so concurrent callers cannot both win. A
failed attempt always returns the record to ``pending`` so it can be retried.
"""
import os
import uuid
from datetime import timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateContentError, MediaLibraryError, NotFoundError, TranscriptionError
from ..extensions import db, notifier, rq
from ..models import asset_model
from ..models.base import utcnow
from ..models.transcription import FINISHED, PENDING, PROCESSING, Transcription
from ..services import whisper
from ..services.postprocess import group_transcription
from . import job
from .sync import sync_record


def _notify(tr, action='update'):
    notifier.notify(Transcription.MODEL, tr.id, action, tr.to_dict())


def get_transcription(transcription_id):
    tr = db.session.get(Transcription, transcription_id)
    if tr is None:
        raise NotFoundError(Transcription.MODEL, transcription_id)
    return tr


def find_or_create(target_type, target_id):
    """Return ``(transcription, created)`` for an Audio/Video target."""
    model = asset_model(target_type)
    target = db.session.get(model, target_id)
    if target is None:
        raise NotFoundError(target_type, target_id)

    tr = Transcription.query.filter_by(target_id=target_id, target_type=target_type).first()
    if tr is not None:
        return tr, False

    tr = Transcription(target_id=target_id, target_type=target_type, target_md5=target.md5, state=PENDING)
    db.session.add(tr)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # lost a creation race, or this content is already transcribed under another target
        tr = Transcription.query.filter_by(target_id=target_id, target_type=target_type).first()
        if tr is None:
            raise DuplicateContentError(Transcription.MODEL, target.md5)
        return tr, False

    _notify(tr, 'create')
    return tr, True


def _claim(transcription_id, force):
    """Move the row to ``processing``; returns the attempt token, or None if not claimed."""
    allowed = Transcription.state != PROCESSING if force else Transcription.state == PENDING
    token = str(uuid.uuid4())
    res = db.session.execute(
        update(Transcription)
        .where(Transcription.id == transcription_id, allowed)
        .values(state=PROCESSING, attempt_id=token, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return token if res.rowcount == 1 else None


def _owned(transcription_id, token):
    return (
        Transcription.id == transcription_id,
        Transcription.state == PROCESSING,
        Transcription.attempt_id == token,
    )


def _finish(transcription_id, token, engine, model, result):
    res = db.session.execute(
        update(Transcription)
        .where(*_owned(transcription_id, token))
        .values(state=FINISHED, attempt_id=None, engine=engine, model=model, result=result, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return res.rowcount == 1


def _release(transcription_id, token):
    db.session.rollback()
    db.session.execute(
        update(Transcription)
        .where(*_owned(transcription_id, token))
        .values(state=PENDING, attempt_id=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def process(transcription_id, force=False):
    """Run one speech-to-text attempt.

    Returns the finished Transcription, or None when another attempt holds the
    record (or it is already finished and ``force`` is not set). An attempt
    whose row was swept back to ``pending`` meanwhile discards its result.
    """
    tr = get_transcription(transcription_id)
    token = _claim(transcription_id, force)
    if token is None:
        db.session.refresh(tr)
        current_app.logger.warning(f"[{transcription_id}] Transcription is {tr.state}, not starting.")
        return None

    db.session.refresh(tr)
    _notify(tr)
    current_app.logger.info(f"[{tr.id}] Start to transcribe.")

    try:
        target = db.session.get(asset_model(tr.target_type), tr.target_id)
        if target is None:
            raise NotFoundError(tr.target_type, tr.target_id)
        file_path = target.file_path
        if not os.path.exists(file_path):
            raise TranscriptionError(f"No file path for {tr.target_type} {tr.target_id}.")

        raw = whisper.transcribe(file_path, force=force, prompt=current_app.config.get('WHISPER_PROMPT'))
        result = group_transcription(raw.get('words') or [],
                                     max_chars=current_app.config.get('TRANSCRIPT_SEGMENT_MAX_CHARS', 120))
        finished = _finish(transcription_id, token, raw.get('engine'), raw.get('model'), result)
    except Exception as e:
        current_app.logger.error(f"[{transcription_id}] Transcription not finished: {e}")
        _release(transcription_id, token)
        db.session.refresh(tr)
        _notify(tr)
        if isinstance(e, MediaLibraryError):
            raise
        raise TranscriptionError(f"Transcription {transcription_id} failed: {e}") from e

    db.session.refresh(tr)
    if not finished:
        current_app.logger.warning(f"[{tr.id}] Attempt lost ownership of the transcription, result discarded.")
        return None

    current_app.logger.info(f"[{tr.id}] Transcription finished.")
    _notify(tr)
    # a failed sync never fails the transcription
    rq.enqueue(sync_record, Transcription.MODEL, tr.id)
    return tr


def transcribe_target(target_type, target_id):
    """Transcribe an asset, refreshing the transcript if it already exists."""
    tr, _created = find_or_create(target_type, target_id)
    if tr.state == PENDING:
        return process(tr.id)
    if tr.state == FINISHED:
        return process(tr.id, force=True)
    current_app.logger.warning(f"[{tr.id}] Transcription is processing.")
    return None


def update_result(transcription_id, result):
    tr = get_transcription(transcription_id)
    tr.result = result
    db.session.commit()
    _notify(tr)
    return tr


def sweep_timeout():
    """Configured sweep age, never shorter than one STT request may take."""
    cfg = current_app.config
    return max(cfg.get('TRANSCRIPTION_TIMEOUT_SECONDS', 900), cfg.get('WHISPER_TIMEOUT', 600) + 60)


def reset_stale(timeout_seconds=None):
    """Return ``processing`` rows older than the timeout to ``pending``.

    A process that died mid-attempt leaves its record in ``processing``; this
    sweep makes such records retryable again. Clearing ``attempt_id`` means a
    swept attempt that is in fact still alive can no longer finish the row.
    """
    if timeout_seconds is None:
        timeout_seconds = sweep_timeout()
    cutoff = utcnow() - timedelta(seconds=timeout_seconds)
    res = db.session.execute(
        update(Transcription)
        .where(Transcription.state == PROCESSING, Transcription.updated_at <= cutoff)
        .values(state=PENDING, attempt_id=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    if res.rowcount:
        current_app.logger.warning('reset %s stale transcription(s) to pending', res.rowcount)
    return res.rowcount


@job
def transcribe_job(target_type, target_id):
    """Queue entrypoint for asset transcription; failures end here."""
    try:
        tr = transcribe_target(target_type, target_id)
        return tr.id if tr else None
    except MediaLibraryError as e:
        current_app.logger.error('background transcription of %s %s failed: %s', target_type, target_id, e)
        notifier.error(str(e))
        return None


@job
def process_job(transcription_id, force=False):
    try:
        tr = process(transcription_id, force=force)
        return tr.id if tr else None
    except MediaLibraryError as e:
        current_app.logger.error('background transcription %s failed: %s', transcription_id, e)
        notifier.error(str(e))
        return None
