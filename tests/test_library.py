import os
import uuid

import pytest

from medialib import library
from medialib.errors import DuplicateContentError, IngestionError, InvalidTargetTypeError, NotFoundError
from medialib.extensions import db, downloader
from medialib.models import Audio, Transcription, Video
from medialib.services import storage


def test_ingest_local_audio(app, media, synced, stt):
    path = media('talk.mp3')
    md5 = storage.hash_file(path)

    audio = library.ingest(path)

    assert audio.id == str(uuid.uuid5(uuid.NAMESPACE_URL, f'24000001/{md5}'))
    assert audio.name == 'Talk'
    assert audio.md5 == md5
    assert audio.file_path == os.path.join(app.config['LIBRARY_DIR'], '24000001', 'audios', f'{md5}.mp3')
    assert os.path.exists(audio.file_path)
    assert audio.media_metadata['extname'] == '.mp3'
    assert audio.media_metadata['duration'] == 3.5

    tr = audio.transcription
    assert tr.state == 'finished'
    assert tr.target_md5 == md5
    assert [s['text'] for s in tr.result] == ['Hello world.', 'How are you?']
    assert tr.synced_at is not None

    assert audio.is_uploaded
    assert audio.is_synced
    assert ('Audio', audio.id) in synced
    assert ('Transcription', tr.id) in synced
    assert stt.calls == 1


def test_ingest_same_content_twice_is_rejected(app, media):
    first = library.ingest(media('talk.mp3', b'identical'))

    with pytest.raises(DuplicateContentError) as exc:
        library.ingest(media('copy.mp3', b'identical'))

    assert exc.value.existing_id == first.id
    assert Audio.query.count() == 1
    assert os.path.exists(first.file_path)


def test_video_submitted_as_audio_is_stored_as_video(app, media):
    record = library.ingest(media('clip.mp4'), kind_hint='audio')

    assert isinstance(record, Video)
    assert Audio.query.count() == 0
    assert '/videos/' in record.file_path.replace(os.sep, '/')
    assert record.transcription.target_type == 'Video'


def test_ingest_rejects_missing_and_unsupported_files(app, media, tmp_path):
    with pytest.raises(IngestionError):
        library.ingest(str(tmp_path / 'missing.mp3'))
    with pytest.raises(IngestionError):
        library.ingest(media('notes.txt'))
    assert Audio.query.count() == 0


def test_ingest_remote_source(app, monkeypatch):
    from fakes import FakeResponse, FakeSession

    body = b'remote media bytes'
    session = FakeSession(FakeResponse([body], headers={'Content-Length': str(len(body))}))
    monkeypatch.setattr(downloader, 'session', session)

    audio = library.ingest('https://example.com/podcast/episode.mp3')

    assert session.requested == ['https://example.com/podcast/episode.mp3']
    assert audio.source == 'https://example.com/podcast/episode.mp3'
    assert audio.name == 'Episode'
    with open(audio.file_path, 'rb') as fh:
        assert fh.read() == body
    assert downloader.dashboard()[0]['state'] == 'completed'
    # the downloaded copy is gone once it is in the library
    assert os.listdir(app.config['DOWNLOAD_DIR']) == []


def test_ingest_remote_non_ascii_name(app, monkeypatch):
    from fakes import FakeResponse, FakeSession

    monkeypatch.setattr(downloader, 'session', FakeSession(FakeResponse([b'lesson audio'])))

    audio = library.ingest('https://example.com/%E4%B8%AD%E6%96%87.mp3')

    assert isinstance(audio, Audio)
    assert audio.name == '中文'
    assert audio.file_path.endswith(f'{audio.md5}.mp3')
    assert audio.media_metadata['extname'] == '.mp3'


def test_rejected_remote_download_is_removed(app, media, monkeypatch):
    from fakes import FakeResponse, FakeSession

    library.ingest(media('talk.mp3', b'same content'))
    monkeypatch.setattr(downloader, 'session', FakeSession(FakeResponse([b'same content'])))

    with pytest.raises(DuplicateContentError):
        library.ingest('https://example.com/talk-copy.mp3')
    assert os.listdir(app.config['DOWNLOAD_DIR']) == []


def test_failed_transcription_does_not_fail_ingest(app, media, stt, events):
    stt.error = RuntimeError('stt service down')

    audio = library.ingest(media('talk.mp3'))

    assert audio.transcription.state == 'pending'
    assert audio.transcription.result is None
    errors = [p for c, p in events if c == 'on-notification']
    assert errors and 'stt service down' in errors[0]['message']


def test_update_makes_record_unsynced(app, media):
    audio = library.ingest(media('talk.mp3'))
    assert audio.is_synced

    library.update('audio', audio.id, name='Renamed')

    assert audio.name == 'Renamed'
    assert not audio.is_synced


def test_update_rejects_unknown_fields(app, media):
    audio = library.ingest(media('talk.mp3'))
    with pytest.raises(ValueError):
        library.update('audio', audio.id, md5='0' * 32)


def test_find_one_resyncs_unsynced_record(app, media, synced):
    audio = library.ingest(media('talk.mp3'))
    library.update('audio', audio.id, description='notes')
    synced.clear()

    library.find_one('audio', audio.id)

    assert synced == [('Audio', audio.id)]
    assert audio.is_synced


def test_destroy_removes_row_and_file(app, media, events):
    audio = library.ingest(media('talk.mp3'))
    file_path = audio.file_path
    audio_id = audio.id

    library.destroy('audio', audio_id)

    assert db.session.get(Audio, audio_id) is None
    assert not os.path.exists(file_path)
    assert events[-1][1]['action'] == 'destroy'
    assert events[-1][1]['id'] == audio_id
    # the transcript survives the asset
    assert Transcription.query.filter_by(target_id=audio_id).count() == 1

    with pytest.raises(NotFoundError):
        library.get('audio', audio_id)


def test_unknown_kind(app):
    with pytest.raises(InvalidTargetTypeError):
        library.find_all('document')


def test_events_for_new_asset(app, media, events):
    audio = library.ingest(media('talk.mp3'))

    db_events = [p for c, p in events if c == 'db-on-transaction']
    assert (db_events[0]['model'], db_events[0]['id'], db_events[0]['action']) == ('Audio', audio.id, 'create')
    assert db_events[0]['record']['md5'] == audio.md5
    assert any(p['model'] == 'Transcription' and p['action'] == 'create' for p in db_events)
