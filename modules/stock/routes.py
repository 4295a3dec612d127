# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify, request

from modules.common import date_arg, formdata_from, request_payload, validate_form
from . import ledger, services
from .forms import ProductForm
from .mapper import product_from_domain

products_bp = Blueprint("products", __name__, url_prefix="/productos")


# ───────────────────────────── Helpers ─────────────────────────────

def _validated_payload(obj=None) -> dict:
    payload = request_payload()
    flat = {k: v for k, v in payload.items() if k not in ("expiryDate", "expiry_date")}
    form = ProductForm(formdata=formdata_from(product_from_domain(flat)), obj=obj, meta={"csrf": False})
    validate_form(form)
    return payload


# ───────────────────────────── Views ─────────────────────────────

@products_bp.get("/")
def index():
    return jsonify(services.get_all_products(
        category=request.args.get("category"),
        min_stock=request.args.get("min_stock"),
        search_term=request.args.get("q"),
    ))


@products_bp.post("/")
def create():
    product_id = services.create_product(_validated_payload())
    return jsonify(services.get_product(product_id)), 201


@products_bp.get("/<int:product_id>")
def detail(product_id: int):
    return jsonify(services.get_product(product_id))


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
def update(product_id: int):
    payload = _validated_payload(obj=ledger.get_product_or_404(product_id))
    services.update_product(product_id, payload)
    return jsonify(services.get_product(product_id))


@products_bp.delete("/<int:product_id>")
def delete(product_id: int):
    services.delete_product(product_id)
    return jsonify({"deleted": True, "id": product_id})


@products_bp.get("/<int:product_id>/historial")
def product_history(product_id: int):
    return jsonify(ledger.get_stock_history(
        product_id=product_id,
        warehouse_id=request.args.get("warehouse_id", type=int),
        type=request.args.get("type"),
        from_date=date_arg("from"),
        to_date=date_arg("to"),
    ))


@products_bp.get("/historial")
def history():
    return jsonify(ledger.get_stock_history(
        product_id=request.args.get("product_id", type=int),
        warehouse_id=request.args.get("warehouse_id", type=int),
        type=request.args.get("type"),
        from_date=date_arg("from"),
        to_date=date_arg("to"),
    ))
