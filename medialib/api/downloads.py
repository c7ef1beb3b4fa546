from flask import Blueprint, request, jsonify

from ..extensions import downloader

bp = Blueprint("downloads", __name__)


@bp.get("")
def dashboard():
    return jsonify(downloader.dashboard())


@bp.post("/cancel")
def cancel():
    name = (request.get_json(silent=True) or {}).get("name")
    if not name:
        return jsonify({"error": "name is required"}), 400
    return jsonify({"name": name, "cancelled": downloader.cancel(name)})


@bp.post("/cancel-all")
def cancel_all():
    downloader.cancel_all()
    return jsonify(downloader.dashboard())
