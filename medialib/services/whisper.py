"""Speech-to-text via the Whisper transcription HTTP API.

Calls the API directly with ``requests`` and asks for word-level timestamps.
Raw responses are cached next to the library (``cache/<name>.whisper.json``)
so re-processing reuses them unless ``force`` is given.
"""
import json
import mimetypes
import os

import requests
from flask import current_app

from .storage import cache_path

API_URL = 'https://api.openai.com/v1/audio/transcriptions'
ENGINE = 'whisper'


def _cache_file(file_path):
    return os.path.join(cache_path(), os.path.basename(file_path) + '.whisper.json')


def _request(file_path, prompt=None, language=None):
    api_key = current_app.config.get('OPENAI_API_KEY')
    if not api_key:
        raise RuntimeError('OPENAI_API_KEY is not configured')

    content_type = mimetypes.guess_type(file_path)[0] or 'application/octet-stream'
    data = {
        'model': current_app.config.get('WHISPER_MODEL', 'whisper-1'),
        'response_format': 'verbose_json',
        'timestamp_granularities[]': 'word',
    }
    if prompt:
        data['prompt'] = prompt
    if language:
        data['language'] = language

    with open(file_path, 'rb') as fh:
        r = requests.post(
            current_app.config.get('WHISPER_API_URL', API_URL),
            headers={'Authorization': f'Bearer {api_key}'},
            files={'file': (os.path.basename(file_path), fh, content_type)},
            data=data,
            timeout=current_app.config.get('WHISPER_TIMEOUT', 600),
        )
    r.raise_for_status()
    return r.json()


def transcribe(file_path, force=False, prompt=None, language=None):
    """Return ``{'engine', 'model', 'words': [{'word', 'start', 'end'}]}`` (seconds)."""
    if not os.path.isfile(file_path):
        raise FileNotFoundError(file_path)

    cached = _cache_file(file_path)
    raw = None
    if not force and os.path.exists(cached):
        try:
            with open(cached, 'r', encoding='utf-8') as fh:
                raw = json.load(fh)
            current_app.logger.info('using cached whisper output %s', cached)
        except (OSError, ValueError):
            raw = None

    if raw is None:
        current_app.logger.info('whisper: transcribing %s', file_path)
        raw = _request(file_path, prompt=prompt or current_app.config.get('WHISPER_PROMPT'), language=language)
        with open(cached, 'w', encoding='utf-8') as fh:
            json.dump(raw, fh, ensure_ascii=False)

    words = raw.get('words')
    if words is None:
        # some deployments only return segments; fall back to one "word" per segment
        words = [{'word': s.get('text', ''), 'start': s.get('start'), 'end': s.get('end')}
                 for s in raw.get('segments') or []]
    return {
        'engine': ENGINE,
        'model': current_app.config.get('WHISPER_MODEL', 'whisper-1'),
        'words': words,
    }
