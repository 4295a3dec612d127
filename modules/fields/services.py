# -*- coding: utf-8 -*-
"""
Fields and their lots.

A lot is addressed by (field_id, lot_id); every lot mutation reads the
field's list, edits a copy and writes the whole list back.
"""

from __future__ import annotations

import copy
import logging
import uuid

from extensions import db
from modules.common import atomic, to_float, utcnow
from modules.errors import NotFoundError, ValidationError
from modules.stock.mapper import field_to_domain
from modules.warehouses.models import Warehouse
from .models import Field

logger = logging.getLogger(__name__)

_FIELD_KEYS = {
    "name": "name",
    "location": "location",
    "area": "area",
    "areaUnit": "area_unit",
    "owner": "owner",
    "notes": "notes",
}


# ───────────────────────────── Helpers ─────────────────────────────

def _get_field_or_404(field_id) -> Field:
    field = db.session.get(Field, field_id)
    if field is None:
        raise NotFoundError(f"El campo {field_id} no existe.", field_id=field_id)
    return field


def _field_row(data: dict, *, creating: bool) -> dict:
    row = {}
    for camel, snake in _FIELD_KEYS.items():
        if camel in data:
            row[snake] = data[camel]
        elif snake in data:
            row[snake] = data[snake]

    if creating or "name" in row:
        name = " ".join(str(row.get("name") or "").split())
        if not name:
            raise ValidationError("El nombre del campo es obligatorio.", field="name")
        row["name"] = name
    if "area" in row:
        row["area"] = None if row["area"] in (None, "") else to_float(row["area"], "area", minimum=0)
    if creating or "area_unit" in row:
        row["area_unit"] = (row.get("area_unit") or "ha").strip()
    return row


def _find_lot(lots: list, lot_id: str) -> int:
    for idx, lot in enumerate(lots):
        if lot.get("id") == lot_id:
            return idx
    return -1


# ───────────────────────────── Fields ─────────────────────────────

def get_all_fields() -> list[dict]:
    return [field_to_domain(f) for f in Field.query.order_by(Field.name.asc()).all()]


def get_field(field_id) -> dict:
    return field_to_domain(_get_field_or_404(field_id))


def create_field(data: dict) -> int:
    row = _field_row(data, creating=True)
    with atomic():
        field = Field(lots=[], **row)
        db.session.add(field)
        db.session.flush()
    logger.info("Field %s created: %s", field.id, field.name)
    return field.id


def update_field(field_id, data: dict) -> dict:
    field = _get_field_or_404(field_id)
    row = _field_row(data, creating=False)
    with atomic():
        for key, value in row.items():
            setattr(field, key, value)
    return field_to_domain(field)


def delete_field(field_id) -> bool:
    field = _get_field_or_404(field_id)
    linked = Warehouse.query.filter(Warehouse.field_id == field.id).count()
    if linked:
        raise ValidationError(
            f"El campo '{field.name}' tiene {linked} almacén(es) asociados; no se puede eliminar.",
            field_id=field.id,
            warehouses=linked,
        )
    with atomic():
        db.session.delete(field)
    logger.info("Field %s deleted", field_id)
    return True


# ───────────────────────────── Lots ─────────────────────────────

def add_lot(field_id, data: dict) -> dict:
    field = _get_field_or_404(field_id)
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("El nombre del lote es obligatorio.", field="name")

    lot = {k: v for k, v in data.items() if k not in ("id", "createdAt", "updatedAt")}
    lot["name"] = name
    if lot.get("area") not in (None, ""):
        lot["area"] = to_float(lot["area"], "area", minimum=0)
    lot["id"] = str(uuid.uuid4())
    lot["createdAt"] = utcnow().isoformat()

    with atomic():
        lots = copy.deepcopy(field.lots or [])
        lots.append(lot)
        field.lots = lots
    return lot


def get_lot(field_id, lot_id: str) -> dict:
    field = _get_field_or_404(field_id)
    lots = field.lots or []
    idx = _find_lot(lots, lot_id)
    if idx < 0:
        raise NotFoundError(f"El lote {lot_id} no existe en el campo {field_id}.", lot_id=lot_id)
    return dict(lots[idx])


def update_lot(field_id, lot_id: str, data: dict) -> dict:
    field = _get_field_or_404(field_id)
    lots = copy.deepcopy(field.lots or [])
    idx = _find_lot(lots, lot_id)
    if idx < 0:
        raise NotFoundError(f"El lote {lot_id} no existe en el campo {field_id}.", lot_id=lot_id)

    patch = {k: v for k, v in data.items() if k not in ("id", "createdAt")}
    if "name" in patch:
        patch["name"] = str(patch["name"] or "").strip()
        if not patch["name"]:
            raise ValidationError("El nombre del lote es obligatorio.", field="name")
    if patch.get("area") not in (None, ""):
        patch["area"] = to_float(patch["area"], "area", minimum=0)

    lots[idx].update(patch)
    lots[idx]["updatedAt"] = utcnow().isoformat()
    with atomic():
        field.lots = lots
    return dict(lots[idx])


def remove_lot(field_id, lot_id: str) -> bool:
    field = _get_field_or_404(field_id)
    lots = copy.deepcopy(field.lots or [])
    idx = _find_lot(lots, lot_id)
    if idx < 0:
        raise NotFoundError(f"El lote {lot_id} no existe en el campo {field_id}.", lot_id=lot_id)
    del lots[idx]
    with atomic():
        field.lots = lots
    return True
