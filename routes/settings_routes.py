"""
settings_routes.py — company settings and the active replenishment policy
"""
from flask import Blueprint, request, jsonify, current_app

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


def _erp():
    return current_app.extensions["erp"]


@settings_bp.route("/company", methods=["GET"])
def get_company():
    return jsonify(_erp()["settings"].get())


@settings_bp.route("/company", methods=["PUT"])
def save_company():
    updates = request.get_json(silent=True) or {}
    return jsonify(_erp()["settings"].save(updates))


@settings_bp.route("/company/reload", methods=["POST"])
def reload_company():
    return jsonify(_erp()["settings"].reload())


@settings_bp.route("/policy", methods=["GET"])
def policy():
    return jsonify(_erp()["policy"].to_dict())


# ──────────────────────────────────────────────────────
# COMPANY PROFILES (per user, stored on the backend)
# ──────────────────────────────────────────────────────

@settings_bp.route("/profiles/<user_id>", methods=["GET"])
def get_profile(user_id):
    profile = _erp()["profiles"].get_by_user(user_id)
    if profile is None:
        return jsonify({"status": "ERROR", "message": f"No company profile for user '{user_id}'."}), 404
    return jsonify(profile)


@settings_bp.route("/profiles/<profile_id>", methods=["PATCH"])
def update_profile(profile_id):
    changes = request.get_json(silent=True) or {}
    try:
        profile = _erp()["profiles"].update_profile(profile_id, changes)
    except KeyError as e:
        return jsonify({"status": "ERROR", "message": str(e.args[0])}), 404
    return jsonify(profile)
