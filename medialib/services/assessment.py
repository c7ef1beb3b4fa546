"""Pronunciation assessment through the Azure speech short-audio REST endpoint.

The call is blocking and opaque to the rest of the library: it takes a wav
file plus reference text and returns scores and the per-word breakdown.
"""
import base64
import json
import re

import requests
from flask import current_app

ENDPOINT = 'https://{region}.stt.speech.microsoft.com/speech/recognition/conversation/cognitiveservices/v1'


def camelize(key):
    if '_' in key:
        head, *rest = [p for p in key.split('_') if p]
        return head[:1].lower() + head[1:] + ''.join(p[:1].upper() + p[1:] for p in rest)
    if re.match(r'^[A-Z]{2,}$', key):
        return key.lower()
    return key[:1].lower() + key[1:]


def camelize_keys(obj):
    if isinstance(obj, dict):
        return {camelize(k): camelize_keys(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [camelize_keys(v) for v in obj]
    return obj


def _scores(best):
    # newer responses nest the scores, older ones put them on the NBest item
    pa = best.get('PronunciationAssessment') or best
    return {
        'accuracyScore': pa.get('AccuracyScore'),
        'fluencyScore': pa.get('FluencyScore'),
        'completenessScore': pa.get('CompletenessScore'),
        'pronunciationScore': pa.get('PronScore'),
        'prosodyScore': pa.get('ProsodyScore'),
    }


def pronunciation_assessment(file_path, reference_text, token, region, language='en-US'):
    config = {
        'ReferenceText': reference_text or '',
        'GradingSystem': 'HundredMark',
        'Granularity': 'Phoneme',
        'Dimension': 'Comprehensive',
        'EnableMiscue': True,
        'EnableProsodyAssessment': True,
    }
    headers = {
        'Authorization': f'Bearer {token}',
        'Content-Type': 'audio/wav; codecs=audio/pcm; samplerate=16000',
        'Accept': 'application/json',
        'Pronunciation-Assessment': base64.b64encode(json.dumps(config).encode('utf-8')).decode('ascii'),
    }
    with open(file_path, 'rb') as fh:
        r = requests.post(
            ENDPOINT.format(region=region),
            params={'language': language, 'format': 'detailed'},
            headers=headers,
            data=fh,
            timeout=current_app.config.get('ASSESSMENT_TIMEOUT', 60),
        )
    r.raise_for_status()
    jr = r.json()
    if jr.get('RecognitionStatus') != 'Success' or not jr.get('NBest'):
        raise RuntimeError(f"assessment failed: {jr.get('RecognitionStatus')}")

    best = jr['NBest'][0]
    result = _scores(best)
    content = best.get('ContentAssessment')
    result['contentAssessmentResult'] = {
        'grammarScore': content.get('GrammarScore'),
        'vocabularyScore': content.get('VocabularyScore'),
        'topicScore': content.get('TopicScore'),
    } if content else None
    result['detailResult'] = camelize_keys(best)
    return result
