import asyncio
import logging

from flask import Blueprint, request, jsonify, current_app

logger = logging.getLogger("ERP.Inventory")

inventory_bp = Blueprint("inventory", __name__, url_prefix="/inventory")


def _erp():
    return current_app.extensions["erp"]


@inventory_bp.route("/products", methods=["GET"])
def list_products():
    """Return the session's product records as JSON."""
    records = _erp()["inventory"].list_records()
    return jsonify([r.to_dict() for r in records])


@inventory_bp.route("/products/<code>/stock", methods=["POST"])
def update_stock(code):
    """Set a product's stock in the session and on the backend products row."""
    payload = request.get_json(silent=True) or {}
    stock = payload.get("current_stock")
    if isinstance(stock, bool) or not isinstance(stock, int):
        return jsonify({"status": "ERROR", "message": "current_stock must be an integer"}), 400

    erp = _erp()
    try:
        erp["inventory"].get(code)
        row = erp["products"].find_by_code(code)
    except KeyError as e:
        return jsonify({"status": "ERROR", "message": str(e.args[0])}), 404

    try:
        erp["products"].update_stock(row["id"], stock)
    except ValueError as e:
        return jsonify({"status": "ERROR", "message": str(e)}), 400

    record = erp["inventory"].update_stock(code, stock)
    logger.info(f"[Inventory] {code} stock set to {stock}")
    return jsonify(record.to_dict())


@inventory_bp.route("/products/<code>/evaluation", methods=["GET"])
def evaluate_product(code):
    erp = _erp()
    try:
        record = erp["inventory"].get(code)
    except KeyError as e:
        return jsonify({"status": "ERROR", "message": str(e.args[0])}), 404
    return jsonify(erp["reorder"].evaluate(record))


@inventory_bp.route("/evaluation", methods=["GET"])
def evaluation():
    erp = _erp()
    df = erp["reorder"].evaluate_frame(erp["inventory"].as_frame())
    priority = request.args.get("priority")
    if priority:
        df = df[df["priority"] == priority.lower()]
    df = df.drop(columns=["last_order_date"], errors="ignore")
    return jsonify(df.to_dict(orient="records"))


# ──────────────────────────────────────────────────────
# STOCK ALERTS
# ──────────────────────────────────────────────────────

@inventory_bp.route("/alerts", methods=["GET"])
def alerts():
    erp = _erp()
    return jsonify(erp["alerts"].scan(erp["inventory"].list_records()))


@inventory_bp.route("/alerts/dismiss", methods=["POST"])
def dismiss_alert():
    code = (request.get_json(silent=True) or {}).get("code")
    if not code:
        return jsonify({"status": "ERROR", "message": "code is required"}), 400
    _erp()["alerts"].dismiss(code)
    return jsonify({"status": "SUCCESS", "dismissed": code})


@inventory_bp.route("/alerts/notifications", methods=["POST"])
def toggle_notifications():
    enabled = (request.get_json(silent=True) or {}).get("enabled", True)
    if not isinstance(enabled, bool):
        return jsonify({"status": "ERROR", "message": "enabled must be true or false"}), 400
    return jsonify({"notifications_enabled": _erp()["alerts"].set_notifications(enabled)})


# ──────────────────────────────────────────────────────
# REORDER PREDICTION
# ──────────────────────────────────────────────────────

@inventory_bp.route("/predictions/analyze", methods=["POST"])
def analyze_predictions():
    erp = _erp()
    agent = erp["predictions"]
    predictions = asyncio.run(agent.analyze(erp["inventory"].list_records()))
    logger.info(f"[Predictions] {len(predictions)} products flagged")
    return jsonify(agent.snapshot())


@inventory_bp.route("/predictions", methods=["GET"])
def predictions():
    return jsonify(_erp()["predictions"].snapshot())
