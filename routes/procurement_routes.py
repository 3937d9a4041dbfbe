from flask import Blueprint, request, jsonify, current_app

procurement_bp = Blueprint("procurement", __name__, url_prefix="/procurement")


def _service():
    return current_app.extensions["erp"]["procurement"]


@procurement_bp.route("/purchases", methods=["GET"])
def list_purchases():
    status_filter = request.args.get("status")
    return jsonify(_service().list_purchases(status_filter=status_filter))


@procurement_bp.route("/purchases", methods=["POST"])
def create_purchase():
    payload = request.get_json(silent=True) or {}
    purchase = _service().create_purchase(
        supplier_id=payload.get("supplier_id"),
        items=payload.get("items") or [],
        purchase_date=payload.get("purchase_date"),
        purchase_type=payload.get("purchase_type", "normal"),
        notes=payload.get("notes"),
    )
    return jsonify(purchase), 201


@procurement_bp.route("/purchases/<purchase_id>/items", methods=["GET"])
def purchase_items(purchase_id):
    return jsonify(_service().list_items(purchase_id))


@procurement_bp.route("/purchases/<purchase_id>/status", methods=["POST"])
def update_status(purchase_id):
    status = (request.get_json(silent=True) or {}).get("status")
    if not status:
        return jsonify({"status": "ERROR", "message": "status is required"}), 400
    return jsonify(_service().update_status(purchase_id, status))
