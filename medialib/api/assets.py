from flask import Blueprint, request, jsonify

from .. import library
from ..extensions import rq
from ..jobs import sync as sync_jobs
from ..jobs.sync import upload_record
from ..jobs.transcribe import transcribe_target


def _payload():
    return request.get_json(silent=True) or {}


def asset_blueprint(kind):
    """Same CRUD surface for audios and videos."""
    bp = Blueprint(f"{kind}s", __name__)

    @bp.get("")
    def find_all():
        limit = request.args.get("limit", default=50, type=int)
        offset = request.args.get("offset", default=0, type=int)
        return jsonify([r.to_dict() for r in library.find_all(kind, limit=limit, offset=offset)])

    @bp.get("/<id>")
    def find_one(id):
        return jsonify(library.find_one(kind, id).to_dict())

    @bp.post("")
    def create():
        data = _payload()
        source = data.get("source")
        if not source:
            return jsonify({"error": "source is required"}), 400
        record = library.ingest(
            source,
            kind_hint=kind,
            name=data.get("name"),
            description=data.get("description"),
            cover_url=data.get("coverUrl"),
        )
        return jsonify(record.to_dict()), 201

    @bp.patch("/<id>")
    def update(id):
        data = _payload()
        fields = {}
        for key, attr in (("name", "name"), ("description", "description"), ("coverUrl", "cover_url")):
            if key in data:
                fields[attr] = data[key]
        return jsonify(library.update(kind, id, **fields).to_dict())

    @bp.delete("/<id>")
    def destroy(id):
        library.destroy(kind, id)
        return "", 204

    @bp.post("/<id>/transcribe")
    def transcribe(id):
        record = library.get(kind, id)
        if rq.is_async:
            library.transcribe(kind, id)
            return jsonify({"id": id, "queued": True}), 202
        transcribe_target(record.MODEL, record.id)
        return jsonify(record.to_dict())

    @bp.post("/<id>/upload")
    def upload(id):
        record = library.get(kind, id)
        force = bool(_payload().get("force"))
        if rq.is_async:
            rq.enqueue(upload_record, record.MODEL, record.id, force=force)
            return jsonify({"id": id, "queued": True}), 202
        # inline: UploadError reaches the caller as a 502
        sync_jobs.upload(record, force=force)
        return jsonify(record.to_dict())

    return bp


audios_bp = asset_blueprint("audio")
videos_bp = asset_blueprint("video")
