"""
reorder_routes.py — Flask blueprint for /reorder/* (auto reorder list + bulk actions)
"""
import io

from flask import Blueprint, jsonify, request, send_file, current_app

from execution.bulk_action_dispatcher import EXPORT, PRINT, MARK_ORDERED
from services import export_service

reorder_bp = Blueprint("reorder", __name__, url_prefix="/reorder")


def _erp():
    return current_app.extensions["erp"]


def _records():
    return _erp()["inventory"].list_records()


def _bad_request(message):
    return jsonify({"status": "ERROR", "message": message}), 400


@reorder_bp.route("/products", methods=["GET"])
def reorder_list():
    return jsonify(_erp()["bulk"].reorder_list(_records()))


@reorder_bp.route("/select", methods=["POST"])
def select():
    body = request.get_json(silent=True) or {}
    code = body.get("code")
    selected = body.get("selected", True)
    if not code:
        return _bad_request("code is required")
    if not isinstance(selected, bool):
        return _bad_request("selected must be true or false")

    bulk = _erp()["bulk"]
    bulk.toggle(code, selected, _records())
    return jsonify(bulk.reorder_list(_records()))


@reorder_bp.route("/select-all", methods=["POST"])
def select_all():
    checked = (request.get_json(silent=True) or {}).get("checked", True)
    if not isinstance(checked, bool):
        return _bad_request("checked must be true or false")

    bulk = _erp()["bulk"]
    bulk.select_all(checked, _records())
    return jsonify(bulk.reorder_list(_records()))


@reorder_bp.route("/export", methods=["POST"])
def export():
    fmt = (request.get_json(silent=True) or {}).get("format", export_service.XLSX)
    if fmt not in export_service.MIMETYPES:
        return _bad_request(f"Unsupported format: {fmt}")

    filename, content = _erp()["bulk"].dispatch(EXPORT, _records(), fmt=fmt)
    return send_file(
        io.BytesIO(content),
        mimetype=export_service.MIMETYPES[fmt],
        as_attachment=True,
        download_name=filename,
    )


@reorder_bp.route("/print", methods=["POST"])
def print_purchase_order():
    filename, content = _erp()["bulk"].dispatch(PRINT, _records())
    return send_file(
        io.BytesIO(content),
        mimetype="application/pdf",
        as_attachment=False,
        download_name=filename,
    )


@reorder_bp.route("/mark-ordered", methods=["POST"])
def mark_ordered():
    purchases = _erp()["bulk"].dispatch(MARK_ORDERED, _records())
    return jsonify({
        "status": "SUCCESS",
        "message": f"{sum(len(p['items']) for p in purchases)} products ordered",
        "purchases": purchases,
    })


@reorder_bp.route("/activity", methods=["GET"])
def activity():
    logger = _erp()["bulk"].activity_logger
    return jsonify(logger.read() if logger else [])
