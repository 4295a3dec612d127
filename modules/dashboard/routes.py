from flask import Blueprint, jsonify, request

from modules.common import date_arg
from . import services

dashboard_bp = Blueprint("dashboard", __name__)


@dashboard_bp.get("/dashboard")
def summary():
    return jsonify(services.get_dashboard_summary())


@dashboard_bp.get("/reportes/stock")
def stock_report():
    return jsonify(services.generate_stock_report(
        warehouse_id=request.args.get("warehouse_id", type=int),
        category=request.args.get("category"),
    ))


@dashboard_bp.get("/reportes/movimientos")
def movements_report():
    return jsonify(services.generate_movements_report(
        from_date=date_arg("from"),
        to_date=date_arg("to"),
        product_id=request.args.get("product_id", type=int),
        warehouse_id=request.args.get("warehouse_id", type=int),
        type=request.args.get("type"),
    ))
