import json
import subprocess

from flask import current_app


def run_ffprobe(path):
    res = subprocess.run(
        [current_app.config.get('FFPROBE_PATH', 'ffprobe'), "-v", "error", "-print_format", "json",
         "-show_format", "-show_streams", str(path)],
        capture_output=True,
        text=True,
        timeout=60,
    )
    if res.returncode != 0:
        raise RuntimeError((res.stderr or res.stdout or "ffprobe failed").strip())
    return json.loads(res.stdout or "{}")


def _primary_stream(probe, codec_type):
    for st in probe.get("streams") or []:
        if isinstance(st, dict) and str(st.get("codec_type") or "").lower() == codec_type:
            return st
    return None


def generate_metadata(path):
    """Container format, duration (seconds) and codecs of a media file."""
    probe = run_ffprobe(path)
    fmt = probe.get("format") or {}
    metadata = {
        "formatName": fmt.get("format_name"),
        "formatLongName": fmt.get("format_long_name"),
        "size": int(fmt["size"]) if fmt.get("size") else None,
        "bitRate": int(fmt["bit_rate"]) if fmt.get("bit_rate") else None,
        "duration": float(fmt["duration"]) if fmt.get("duration") else None,
    }
    audio = _primary_stream(probe, "audio")
    if audio:
        metadata["audioCodec"] = audio.get("codec_name")
        metadata["sampleRate"] = int(audio["sample_rate"]) if audio.get("sample_rate") else None
        metadata["channels"] = audio.get("channels")
    video = _primary_stream(probe, "video")
    if video:
        metadata["videoCodec"] = video.get("codec_name")
        metadata["width"] = video.get("width")
        metadata["height"] = video.get("height")
    return {k: v for k, v in metadata.items() if v is not None}


def safe_metadata(path):
    """Like generate_metadata but never fails ingestion: errors give ``{}``."""
    try:
        return generate_metadata(path)
    except Exception as e:
        current_app.logger.error('failed to generate metadata for %s: %s', path, e)
        return {}
