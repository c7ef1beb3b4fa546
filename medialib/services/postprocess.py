"""Grouping of word-level speech-to-text output into transcript segments.

Each segment is ``{startOffset, endOffset, text, words: [{word, startOffset,
endOffset}]}`` with offsets in milliseconds. Adjacent words are merged into
the current segment, which is flushed at the end of a sentence or once its
text reaches ``max_chars``.
"""
from typing import List, Dict, Any
import re

END_OF_SENTENCE = re.compile(r'[.?!。？！]["\')\]]*$')
# special tokens whisper.cpp style engines emit around segments
MAGIC_TOKENS = re.compile(r'^\[_[A-Z_]+_?\d*\]$')


def _ms(value):
    try:
        return int(round(float(value) * 1000))
    except (TypeError, ValueError):
        return None


def _segment(group):
    return {
        'startOffset': group[0]['startOffset'],
        'endOffset': group[-1]['endOffset'],
        'text': ' '.join(w['word'] for w in group),
        'words': group,
    }


def group_transcription(words: List[Dict[str, Any]], max_chars: int = 120) -> List[Dict[str, Any]]:
    """Turn ``[{word, start, end}]`` (seconds) into grouped segments."""
    segments = []
    group = []
    length = 0
    for w in words or []:
        text = (w.get('word') or w.get('text') or '').strip()
        if not text or MAGIC_TOKENS.match(text):
            continue
        start = _ms(w.get('start'))
        end = _ms(w.get('end'))
        if start is None:
            start = group[-1]['endOffset'] if group else 0
        if end is None:
            end = start
        group.append({'word': text, 'startOffset': start, 'endOffset': end})
        length += len(text) + (1 if length else 0)

        if END_OF_SENTENCE.search(text) or length >= max_chars:
            segments.append(_segment(group))
            group = []
            length = 0

    if group:
        segments.append(_segment(group))
    return segments
