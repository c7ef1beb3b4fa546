from flask import Blueprint, request, jsonify

from .. import library

bp = Blueprint("recordings", __name__)


@bp.post("")
def create():
    data = request.get_json(silent=True) or {}
    missing = [k for k in ("filePath", "targetType", "targetId") if not data.get(k)]
    if missing:
        return jsonify({"error": f"{', '.join(missing)} required"}), 400
    recording = library.create_recording(
        data["filePath"],
        data["targetType"],
        data["targetId"],
        duration=data.get("duration", 0),
        reference_id=data.get("referenceId"),
        reference_text=data.get("referenceText"),
    )
    return jsonify(recording.to_dict()), 201


@bp.get("/<id>")
def find_one(id):
    return jsonify(library.get_recording(id).to_dict())


@bp.delete("/<id>")
def destroy(id):
    library.destroy_recording(id)
    return "", 204


@bp.post("/<id>/assess")
def assess(id):
    return jsonify(library.assess_recording(id).to_dict())
