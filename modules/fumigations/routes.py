# -*- coding: utf-8 -*-
from __future__ import annotations

import json
from io import BytesIO

from flask import Blueprint, jsonify, request, send_file

from modules.common import date_arg, request_payload
from modules.errors import ValidationError
from modules.storage.blobs import REPORTS, get_blob_store
from . import report, services

fumigations_bp = Blueprint("fumigations", __name__, url_prefix="/fumigaciones")


# ───────────────────────────── Helpers ─────────────────────────────

def _payload_and_image():
    """
    JSON body, or multipart with the order in a ``data`` part (JSON text)
    plus an optional ``image`` file.
    """
    if request.is_json:
        return request_payload(), None
    raw = request.form.get("data")
    if raw:
        try:
            payload = json.loads(raw)
        except ValueError:
            raise ValidationError("El campo 'data' debe contener JSON válido.", field="data") from None
        if not isinstance(payload, dict):
            raise ValidationError("El campo 'data' debe ser un objeto JSON.", field="data")
    else:
        payload = request.form.to_dict()
    image = request.files.get("image")
    if image is not None and not image.filename:
        image = None
    return payload, image


# ───────────────────────────── Views ─────────────────────────────

@fumigations_bp.get("/")
def index():
    return jsonify(services.get_all_fumigations(
        status=request.args.get("status"),
        field_id=request.args.get("field_id", type=int),
        crop=request.args.get("crop"),
        from_date=date_arg("from"),
        to_date=date_arg("to"),
        search_term=request.args.get("q"),
    ))


@fumigations_bp.get("/siguiente-orden")
def next_order():
    return jsonify({"orderNumber": services.next_order_number()})


@fumigations_bp.post("/")
def create():
    payload, image = _payload_and_image()
    fumigation_id = services.create_fumigation(payload, image=image)
    return jsonify(services.get_fumigation(fumigation_id)), 201


@fumigations_bp.get("/<int:fumigation_id>")
def detail(fumigation_id: int):
    return jsonify(services.get_fumigation(fumigation_id))


@fumigations_bp.route("/<int:fumigation_id>", methods=["PUT", "PATCH"])
def update(fumigation_id: int):
    payload, image = _payload_and_image()
    return jsonify(services.update_fumigation(fumigation_id, payload, image=image))


@fumigations_bp.post("/<int:fumigation_id>/estado")
def change_status(fumigation_id: int):
    payload, image = _payload_and_image()
    status = payload.get("status")
    if not status:
        raise ValidationError("Indique el nuevo estado.", field="status")
    return jsonify(services.update_fumigation_status(fumigation_id, status, completion_data=payload, image=image))


@fumigations_bp.delete("/<int:fumigation_id>")
def delete(fumigation_id: int):
    services.delete_fumigation(fumigation_id)
    return jsonify({"deleted": True, "id": fumigation_id})


@fumigations_bp.get("/<int:fumigation_id>/imagen")
def image(fumigation_id: int):
    data = services.get_fumigation_image(fumigation_id)
    return send_file(BytesIO(data), mimetype="application/octet-stream")


@fumigations_bp.get("/<int:fumigation_id>/pdf")
def export_pdf(fumigation_id: int):
    pdf, filename = report.generate_fumigation_report(fumigation_id)
    return send_file(
        BytesIO(pdf),
        as_attachment=True,
        download_name=filename,
        mimetype="application/pdf",
    )


@fumigations_bp.post("/<int:fumigation_id>/exportar")
def export_to_storage(fumigation_id: int):
    path = report.export_fumigation_report(fumigation_id)
    return jsonify({"path": path, "url": get_blob_store().get_public_url(REPORTS, path)}), 201
