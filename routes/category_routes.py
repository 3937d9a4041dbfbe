from flask import Blueprint, request, jsonify, current_app

category_bp = Blueprint("categories", __name__, url_prefix="/categories")


def _service():
    return current_app.extensions["erp"]["categories"]


@category_bp.route("/", methods=["GET"])
def list_categories():
    return jsonify(_service().list_categories())


@category_bp.route("/", methods=["POST"])
def create_category():
    payload = request.get_json(silent=True) or {}
    try:
        category = _service().create_category(
            code=payload.get("code"),
            name=payload.get("name"),
            description=payload.get("description"),
        )
    except ValueError as e:
        return jsonify({"status": "ERROR", "message": str(e)}), 400
    return jsonify(category), 201


@category_bp.route("/<category_id>", methods=["PATCH"])
def update_category(category_id):
    payload = request.get_json(silent=True) or {}
    try:
        category = _service().update_category(category_id, payload)
    except KeyError as e:
        return jsonify({"status": "ERROR", "message": str(e.args[0])}), 404
    except ValueError as e:
        return jsonify({"status": "ERROR", "message": str(e)}), 400
    return jsonify(category)


@category_bp.route("/<category_id>", methods=["DELETE"])
def delete_category(category_id):
    try:
        _service().delete_category(category_id)
    except KeyError as e:
        return jsonify({"status": "ERROR", "message": str(e.args[0])}), 404
    return jsonify({"status": "SUCCESS", "deleted": category_id})
