"""Client for the remote library API (metadata sync and speech tokens).

Transient failures (429 / 5xx / network) are retried with exponential backoff;
anything else is raised as ``requests`` exceptions for the caller to map.
"""
import random
import time

import requests
from flask import current_app

SYNC_PATHS = {
    'Audio': '/api/mine/audios',
    'Video': '/api/mine/videos',
    'Recording': '/api/mine/recordings',
    'Transcription': '/api/transcriptions',
    'PronunciationAssessment': '/api/mine/pronunciation_assessments',
}


def _url(path):
    return current_app.config.get('WEB_API_URL', '').rstrip('/') + path


def _headers():
    headers = {'Content-Type': 'application/json'}
    token = current_app.config.get('WEB_API_TOKEN')
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return headers


def _post(path, payload=None, max_attempts=3):
    backoff = 1.0
    for attempt in range(1, max_attempts + 1):
        try:
            r = requests.post(_url(path), headers=_headers(), json=payload or {},
                              timeout=current_app.config.get('WEB_API_TIMEOUT', 30))
        except (requests.ConnectionError, requests.Timeout):
            if attempt == max_attempts:
                raise
            current_app.logger.warning(f'web api network error on {path}, attempt {attempt}/{max_attempts}, retrying in {backoff}s')
        else:
            if r.status_code == 429 or 500 <= r.status_code < 600:
                if attempt == max_attempts:
                    r.raise_for_status()
                ra = r.headers.get('Retry-After')
                try:
                    wait = float(ra) if ra else backoff
                except ValueError:
                    wait = backoff
                current_app.logger.warning(f'web api {path} returned {r.status_code}, attempt {attempt}/{max_attempts}, retrying in {wait}s')
                time.sleep(wait + random.uniform(0, 0.5))
                backoff *= 2
                continue
            r.raise_for_status()
            return r.json() if r.content else {}
        time.sleep(backoff + random.uniform(0, 0.5))
        backoff *= 2


def sync(model, record):
    """Push a record's JSON to the remote API."""
    try:
        path = SYNC_PATHS[model]
    except KeyError:
        raise ValueError(f'no sync endpoint for {model}')
    return _post(path, record)


def generate_speech_token():
    """Returns ``{'token': ..., 'region': ...}`` for the assessment service."""
    data = _post('/api/speech/tokens')
    if not data.get('token') or not data.get('region'):
        raise ValueError('speech token response missing token/region')
    return {'token': data['token'], 'region': data['region']}
