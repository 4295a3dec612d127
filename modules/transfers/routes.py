# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, jsonify, request

from modules.common import request_payload
from modules.errors import ValidationError
from . import services

transfers_bp = Blueprint("transfers", __name__, url_prefix="/transferencias")


@transfers_bp.get("/")
def index():
    return jsonify(services.get_all_transfers(status=request.args.get("status")))


@transfers_bp.post("/")
def create():
    transfer_id = services.create_transfer(request_payload())
    return jsonify(services.get_transfer(transfer_id)), 201


@transfers_bp.get("/<int:transfer_id>")
def detail(transfer_id: int):
    return jsonify(services.get_transfer(transfer_id))


@transfers_bp.post("/<int:transfer_id>/estado")
def change_status(transfer_id: int):
    payload = request_payload()
    status = payload.get("status")
    if not status:
        raise ValidationError("Indique el nuevo estado.", field="status")
    return jsonify(services.update_transfer_status(transfer_id, status, notes=payload.get("notes")))
