from flask import Blueprint, request, jsonify

from ..extensions import rq
from ..jobs import transcribe as transcriptions
from ..models.transcription import PENDING

bp = Blueprint("transcriptions", __name__)


@bp.post("")
def find_or_create():
    data = request.get_json(silent=True) or {}
    tr, created = transcriptions.find_or_create(data.get("targetType"), data.get("targetId"))
    if tr.state == PENDING:
        rq.enqueue(transcriptions.process_job, tr.id)
    return jsonify(tr.to_dict()), 201 if created else 200


@bp.post("/<id>/process")
def process(id):
    tr = transcriptions.get_transcription(id)
    if rq.is_async:
        rq.enqueue(transcriptions.process_job, id, force=True)
        return jsonify({"id": id, "queued": True}), 202
    # inline: TranscriptionError reaches the caller as a 502
    transcriptions.process(id, force=True)
    return jsonify(tr.to_dict())


@bp.patch("/<id>")
def update(id):
    data = request.get_json(silent=True) or {}
    if "result" not in data:
        return jsonify({"error": "result is required"}), 400
    return jsonify(transcriptions.update_result(id, data["result"]).to_dict())
