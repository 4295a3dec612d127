# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify, request

from modules.common import pick, request_payload
from . import services

purchases_bp = Blueprint("purchases", __name__, url_prefix="/compras")


@purchases_bp.get("/")
def index():
    return jsonify(services.get_all_purchases(status=request.args.get("status")))


@purchases_bp.post("/")
def create():
    purchase_id = services.create_purchase(request_payload())
    return jsonify(services.get_purchase(purchase_id)), 201


@purchases_bp.get("/<int:purchase_id>")
def detail(purchase_id: int):
    return jsonify(services.get_purchase(purchase_id))


@purchases_bp.get("/<int:purchase_id>/historial")
def history(purchase_id: int):
    return jsonify(services.get_purchase_history(purchase_id))


@purchases_bp.post("/<int:purchase_id>/recepcion")
def receive(purchase_id: int):
    """Body: {"warehouseId": 1, "products": [{"productId": 3, "quantity": 40}], "notes": "..."}"""
    payload = request_payload()
    purchase = services.receive_purchase(
        purchase_id,
        pick(payload, "warehouseId", "warehouse_id"),
        pick(payload, "products", "items"),
        notes=payload.get("notes"),
    )
    return jsonify(purchase)
