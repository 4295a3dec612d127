# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify, request

from modules.common import formdata_from, request_payload, validate_form
from modules.stock.ledger import get_warehouse_or_404
from modules.stock.mapper import warehouse_from_domain
from . import services
from .forms import WarehouseForm

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/almacenes")


# ───────────────────────────── Helpers ─────────────────────────────

def _validated_payload(obj=None) -> dict:
    """Runs the flat fields through WarehouseForm, returns the raw payload for the service."""
    payload = request_payload()
    row = warehouse_from_domain(payload)
    if "field_id" in row:
        field_id = row.pop("field_id")
        row["field"] = "__None" if field_id in (None, "") else field_id
    form = WarehouseForm(formdata=formdata_from(row), obj=obj, meta={"csrf": False})
    validate_form(form)
    return payload


# ───────────────────────────── Views ─────────────────────────────

@warehouses_bp.get("/")
def index():
    return jsonify(services.get_all_warehouses(
        status=request.args.get("status"),
        type=request.args.get("type"),
        field_id=request.args.get("field_id", type=int),
    ))


@warehouses_bp.post("/")
def create():
    warehouse_id = services.create_warehouse(_validated_payload())
    return jsonify(services.get_warehouse(warehouse_id)), 201


@warehouses_bp.get("/<int:warehouse_id>")
def detail(warehouse_id: int):
    return jsonify(services.get_warehouse(warehouse_id))


@warehouses_bp.get("/<int:warehouse_id>/stock")
def stock(warehouse_id: int):
    return jsonify(services.get_warehouse_stock(warehouse_id))


@warehouses_bp.route("/<int:warehouse_id>", methods=["PUT", "PATCH"])
def update(warehouse_id: int):
    payload = _validated_payload(obj=get_warehouse_or_404(warehouse_id))
    return jsonify(services.update_warehouse(warehouse_id, payload))


@warehouses_bp.delete("/<int:warehouse_id>")
def delete(warehouse_id: int):
    services.delete_warehouse(warehouse_id)
    return jsonify({"deleted": True, "id": warehouse_id})
