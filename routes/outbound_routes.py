from flask import Blueprint, request, jsonify, current_app

from services.export_service import read_tracking_sheet

outbound_bp = Blueprint("outbound", __name__, url_prefix="/outbound")


def _service():
    return current_app.extensions["erp"]["outbound"]


@outbound_bp.route("/orders", methods=["GET"])
def list_orders():
    return jsonify(_service().list_outbounds(search=request.args.get("q")))


@outbound_bp.route("/orders", methods=["POST"])
def create_order():
    payload = request.get_json(silent=True) or {}
    outbound = _service().create_outbound(
        customer_id=payload.get("customer_id"),
        customer_name=payload.get("customer_name"),
        items=payload.get("items") or [],
        outbound_date=payload.get("outbound_date"),
        tracking_number=payload.get("tracking_number"),
        notes=payload.get("notes"),
    )
    return jsonify(outbound), 201


@outbound_bp.route("/orders/<outbound_id>/items", methods=["GET"])
def order_items(outbound_id):
    return jsonify(_service().list_items(outbound_id))


@outbound_bp.route("/tracking-import", methods=["POST"])
def tracking_import():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"status": "ERROR", "message": "file is required"}), 400

    tracking_df = read_tracking_sheet(upload.stream, upload.filename)
    result = _service().apply_tracking_numbers(tracking_df)
    return jsonify({"status": "SUCCESS", **result})
