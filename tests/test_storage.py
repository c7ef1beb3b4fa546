import os

import pytest

from medialib.errors import IngestionError
from medialib.services import storage


def test_place_is_content_addressed(app, media):
    a = media('a.mp3', b'same bytes')
    b = media('b.mp3', b'same bytes')

    h1, dest1 = storage.place(a, 'audios')
    h2, dest2 = storage.place(b, 'audios')

    assert h1 == h2 == storage.hash_file(a)
    assert dest1 == dest2
    assert dest1 == os.path.join(app.config['LIBRARY_DIR'], '24000001', 'audios', f'{h1}.mp3')
    with open(dest1, 'rb') as fh:
        assert fh.read() == b'same bytes'


def test_place_twice_does_not_rewrite(app, media, monkeypatch):
    path = media('talk.mp3')
    storage.place(path, 'audios')

    copies = []
    monkeypatch.setattr('medialib.services.storage.shutil.copyfile', lambda *a: copies.append(a))
    storage.place(path, 'audios')
    assert copies == []


def test_placement_locks_are_a_fixed_pool(app, media):
    for i in range(200):
        storage.place(media(f'clip-{i}.mp3', f'clip {i}'.encode()), 'audios')

    assert len(storage._placement_locks) == storage.LOCK_STRIPES
    h = storage.hash_file(media('x.mp3', b'some bytes'))
    assert storage._lock_for(h) is storage._lock_for(h)
    assert storage._lock_for(h) in storage._placement_locks


def test_place_replaces_corrupt_copy(app, media):
    path = media('talk.mp3')
    h, dest = storage.place(path, 'audios')
    with open(dest, 'wb') as fh:
        fh.write(b'truncated')

    storage.place(path, 'audios')
    assert storage.hash_file(dest) == h
    assert not [f for f in os.listdir(os.path.dirname(dest)) if f.endswith('.part')]


def test_place_rejects_unknown_kind_and_missing_file(app, media, tmp_path):
    with pytest.raises(IngestionError):
        storage.place(media('talk.mp3'), 'documents')
    with pytest.raises(IngestionError):
        storage.place(str(tmp_path / 'missing.mp3'), 'audios')


def test_remove_missing_file_is_not_an_error(app, tmp_path):
    assert storage.remove(str(tmp_path / 'nope.mp3')) is False
    assert storage.remove(None) is False


def test_put_blob_local_backend(app, media):
    path = media('talk.mp3')
    result = storage.put_blob('abc123', path)
    assert result['success'] is True
    assert os.path.exists(os.path.join(app.config['REMOTE_STORAGE_DIR'], 'abc123'))


def test_put_blob_s3_reports_failure(app, media, monkeypatch):
    from botocore.exceptions import ClientError

    class FakeS3:
        def upload_file(self, file_path, bucket, key):
            raise ClientError({'Error': {'Code': '403', 'Message': 'denied'}}, 'PutObject')

    app.config['STORAGE_BACKEND'] = 's3'
    app.config['S3_BUCKET'] = 'library'
    monkeypatch.setattr('medialib.services.storage._s3_client', lambda: FakeS3())
    result = storage.put_blob('abc123', media('talk.mp3'))
    assert result['success'] is False
