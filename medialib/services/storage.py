"""Content-addressed library storage and remote blob upload.

Local layout: ``<LIBRARY_DIR>/<USER_ID>/<kind>/<md5><ext>``. A file is only
ever written to the path derived from its own hash, so writers of different
content never contend; writers of the same content either short-circuit on
an existing copy or race on an atomic rename of identical bytes.
"""
import hashlib
import os
import shutil
import threading
import uuid

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from ..errors import IngestionError

KINDS = ("audios", "videos", "recordings")
CHUNK_SIZE = 1024 * 1024

# fixed pool of lock stripes; placers of the same hash always share a stripe
LOCK_STRIPES = 64
_placement_locks = [threading.Lock() for _ in range(LOCK_STRIPES)]


def _lock_for(content_hash):
    return _placement_locks[int(content_hash[:8], 16) % LOCK_STRIPES]


def user_data_path():
    d = os.path.join(current_app.config['LIBRARY_DIR'], str(current_app.config['USER_ID']))
    os.makedirs(d, exist_ok=True)
    return d


def library_path(*parts):
    """Absolute path under the user's library; parent directories are created."""
    path = os.path.abspath(os.path.join(user_data_path(), *parts))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return path


def cache_path():
    d = os.path.join(user_data_path(), 'cache')
    os.makedirs(d, exist_ok=True)
    return d


def hash_file(path):
    md5 = hashlib.md5()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            md5.update(chunk)
    return md5.hexdigest()


def _remove_quietly(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        current_app.logger.exception('failed to remove %s', path)


def place(local_path, kind, content_hash=None):
    """Copy ``local_path`` into the library under its content hash.

    Returns ``(content_hash, final_path)``. Placing the same bytes twice gives
    the same result and the second call does not rewrite the file.
    """
    if kind not in KINDS:
        raise IngestionError('unknown library kind', kind)
    if not os.path.isfile(local_path) or not os.access(local_path, os.R_OK):
        raise IngestionError('source file not readable', local_path)

    try:
        content_hash = content_hash or hash_file(local_path)
    except OSError as e:
        raise IngestionError(f'failed to hash file ({e})', local_path) from e

    ext = os.path.splitext(local_path)[1]
    dest = library_path(kind, f"{content_hash}{ext}")

    with _lock_for(content_hash):
        if os.path.exists(dest):
            try:
                if hash_file(dest) == content_hash:
                    current_app.logger.debug('%s already in library at %s', content_hash, dest)
                    return content_hash, dest
            except OSError:
                pass
            current_app.logger.warning('replacing corrupt library file %s', dest)

        tmp = f"{dest}.{uuid.uuid4().hex}.part"
        try:
            shutil.copyfile(local_path, tmp)
            if hash_file(tmp) != content_hash:
                raise IngestionError('copy verification failed', local_path)
            os.replace(tmp, dest)
            if not os.access(dest, os.R_OK):
                raise IngestionError('copied file not readable', dest)
        except IngestionError:
            _remove_quietly(tmp)
            raise
        except OSError as e:
            _remove_quietly(tmp)
            raise IngestionError(f'failed to copy file ({e})', local_path) from e

    current_app.logger.info('placed %s into %s', local_path, dest)
    return content_hash, dest


def remove(path):
    """Best-effort delete; a missing file is not an error."""
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError:
        current_app.logger.exception('failed to remove library file %s', path)
        return False


def _s3_client():
    s3_kwargs = {}
    endpoint = current_app.config.get('S3_ENDPOINT')
    if endpoint:
        s3_kwargs['endpoint_url'] = endpoint
    region = current_app.config.get('S3_REGION')
    if region:
        s3_kwargs['region_name'] = region
    return boto3.client(
        's3',
        aws_access_key_id=current_app.config.get('S3_ACCESS_KEY'),
        aws_secret_access_key=current_app.config.get('S3_SECRET_KEY'),
        config=Config(signature_version='s3v4'),
        **s3_kwargs,
    )


def put_blob(key, file_path):
    """Upload ``file_path`` to remote storage under ``key`` (the content hash).

    Returns ``{'success': bool, 'data': ...}``; transport errors are reported
    as a non-success result rather than raised.
    """
    backend = current_app.config.get('STORAGE_BACKEND', 'local')
    if backend == 's3':
        bucket = current_app.config.get('S3_BUCKET')
        try:
            _s3_client().upload_file(file_path, bucket, key)
        except (BotoCoreError, ClientError, OSError) as e:
            current_app.logger.exception('S3 upload of %s failed', key)
            return {'success': False, 'data': {'error': str(e)}}
        return {'success': True, 'data': {'key': key, 'url': f"s3://{bucket}/{key}"}}

    d = current_app.config['REMOTE_STORAGE_DIR']
    os.makedirs(d, exist_ok=True)
    dest = os.path.join(d, key)
    try:
        shutil.copyfile(file_path, dest)
    except OSError as e:
        current_app.logger.exception('local blob upload of %s failed', key)
        return {'success': False, 'data': {'error': str(e)}}
    return {'success': True, 'data': {'key': key, 'url': f"file://{os.path.abspath(dest)}"}}
