# -*- coding: utf-8 -*-
"""
Fumigation work orders.

Lifecycle: pending → in_progress → completed, with cancelled reachable from
both open states. Stock is consumed only on the transition to completed.
Evidence images are secondary attachments: failures storing or removing them
are logged and never fail the save.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections import OrderedDict
from typing import Optional

from flask import current_app
from sqlalchemy import String, cast, func, or_

from extensions import db
from modules.common import atomic, pick, to_float, to_int, utcnow
from modules.errors import InvalidTransitionError, NotFoundError, ValidationError
from modules.fields.models import Field
from modules.stock import ledger
from modules.stock.mapper import fumigation_to_domain, from_timestamp
from modules.storage.blobs import FUMIGATION_IMAGES, get_blob_store
from .models import EDITABLE_STATUSES, FUMIGATION_STATUSES, TRANSITIONS, Fumigation, FumigationProduct

logger = logging.getLogger(__name__)

# dose unit → (total unit, divisor); any other unit is kept as given
DOSE_CONVERSIONS = {
    "cc/ha": ("Lts", 1000.0),
    "g/ha": ("Kg", 1000.0),
}


# ───────────────────────────── Quantities ─────────────────────────────

def compute_total_quantity(surface, dose_per_ha, dose_unit: str = "cc/ha") -> tuple[float, str]:
    """surface (ha) × dose per ha; cc/ha and g/ha totals come out in Lts and Kg."""
    dose_unit = str(dose_unit or "").strip() or "cc/ha"
    unit, divisor = DOSE_CONVERSIONS.get(dose_unit, (dose_unit, 1.0))
    total = float(surface) * float(dose_per_ha) / divisor
    return round(total, 2), unit


def recompute_totals(lines: list[dict], surface, reconvert: bool = False) -> list[dict]:
    """
    Totals for already-added lines after the surface changed.

    Without ``reconvert`` the result is ``surface × dose`` with the line's
    unit left as it was, which is how the order form has always behaved.
    """
    out = []
    for line in lines:
        line = dict(line)
        dose = pick(line, "dosePerHa", "dose_per_ha")
        if reconvert:
            total, unit = compute_total_quantity(surface, dose, pick(line, "doseUnit", "dose_unit", default="cc/ha"))
            line["totalUnit"] = unit
        else:
            total = round(float(surface) * float(dose), 2)
        line["totalQuantity"] = total
        out.append(line)
    return out


def next_order_number() -> int:
    current = db.session.query(func.max(Fumigation.order_number)).scalar()
    return (current or 0) + 1


# ───────────────────────────── Helpers ─────────────────────────────

def _get_fumigation_or_404(fumigation_id) -> Fumigation:
    fumigation = db.session.get(Fumigation, fumigation_id)
    if fumigation is None:
        raise NotFoundError(f"La fumigación {fumigation_id} no existe.", fumigation_id=fumigation_id)
    return fumigation


def _required_text(data: dict, key: str, label: str) -> str:
    value = str(data.get(key) or "").strip()
    if not value:
        raise ValidationError(f"El campo '{label}' es obligatorio.", field=key)
    return value


def _clean_header(data: dict, *, partial: bool = False) -> dict:
    """Scalar fields of the order. With ``partial`` only the keys present are checked."""
    row = {}
    for key, label in (("establishment", "establecimiento"), ("applicator", "aplicador"),
                       ("crop", "cultivo"), ("lot", "lote")):
        if not partial or key in data:
            row[key] = _required_text(data, key, label)
    if not partial or "surface" in data:
        row["surface"] = to_float(data.get("surface"), "surface", positive=True)

    if "date" in data:
        try:
            row["date"] = from_timestamp(data.get("date"))
        except ValueError as exc:
            raise ValidationError(str(exc), field="date") from None
    elif not partial:
        row["date"] = utcnow()

    field_id = pick(data, "fieldId", "field_id")
    if field_id not in (None, ""):
        field_id = to_int(field_id, "fieldId")
        if db.session.get(Field, field_id) is None:
            raise NotFoundError(f"El campo {field_id} no existe.", field_id=field_id)
        row["field_id"] = field_id
    elif "fieldId" in data or "field_id" in data:
        row["field_id"] = None

    if "observations" in data:
        row["observations"] = (data.get("observations") or "").strip() or None
    return row


def _clean_lines(raw, surface: float) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("La fumigación debe incluir al menos un producto.", field="products")
    lines = []
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Línea {idx}: formato inválido.", field="products")
        product_raw = pick(item, "productId", "product_id")
        if product_raw in (None, ""):
            raise ValidationError(f"Línea {idx}: seleccione un producto.", field="productId")
        warehouse_raw = pick(item, "warehouseId", "warehouse_id")
        if warehouse_raw in (None, ""):
            raise ValidationError(f"Línea {idx}: seleccione un almacén.", field="warehouseId")
        product_id = to_int(product_raw, "productId")
        warehouse_id = to_int(warehouse_raw, "warehouseId")
        ledger.get_product_or_404(product_id)
        ledger.get_warehouse_or_404(warehouse_id)

        dose = to_float(pick(item, "dosePerHa", "dose_per_ha"), "dosePerHa", positive=True)
        dose_unit = str(pick(item, "doseUnit", "dose_unit", default="") or "").strip() or "cc/ha"
        computed_total, computed_unit = compute_total_quantity(surface, dose, dose_unit)

        total_raw = pick(item, "totalQuantity", "total_quantity")
        if total_raw in (None, ""):
            total, unit = computed_total, computed_unit
        else:
            total = to_float(total_raw, "totalQuantity", minimum=0)
            unit = pick(item, "totalUnit", "total_unit") or computed_unit

        lines.append({
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "dose_per_ha": dose,
            "dose_unit": dose_unit,
            "total_quantity": total,
            "total_unit": unit,
        })
    return lines


def _store_image(fumigation_id: int, image) -> Optional[str]:
    """Uploads a werkzeug FileStorage (or anything with filename/read). None on failure."""
    try:
        filename = getattr(image, "filename", None) or "image.jpg"
        ext = os.path.splitext(filename)[1].lstrip(".").lower() or "jpg"
        path = f"{fumigation_id}/fumigation_{fumigation_id}_{uuid.uuid4().hex}.{ext}"
        return get_blob_store().upload(FUMIGATION_IMAGES, path, image.read())
    except Exception:
        logger.exception("Could not store image for fumigation %s", fumigation_id)
        return None


def _remove_image(path: Optional[str]) -> None:
    if not path:
        return
    try:
        get_blob_store().remove(FUMIGATION_IMAGES, [path])
    except Exception:
        logger.exception("Could not remove fumigation image %s", path)


def _attach_image(fumigation: Fumigation, image) -> None:
    """Replace the evidence image; the old one is removed only once the new one is stored."""
    path = _store_image(fumigation.id, image)
    if path is None:
        return
    old_path = fumigation.image_path
    with atomic():
        fumigation.image_path = path
    if old_path and old_path != path:
        _remove_image(old_path)


def _deduct_stock(fumigation: Fumigation) -> None:
    if current_app.config.get("STOCK_GUARD_FUMIGATION"):
        needed: "OrderedDict[tuple[int, int], float]" = OrderedDict()
        for line in fumigation.products:
            key = (line.product_id, line.warehouse_id)
            needed[key] = needed.get(key, 0.0) + float(line.total_quantity or 0)
        for (product_id, warehouse_id), quantity in needed.items():
            ledger.check_sufficiency(product_id, warehouse_id, quantity)

    for line in fumigation.products:
        ledger.apply_delta(line.product_id, line.warehouse_id, -float(line.total_quantity or 0), {
            "type": "fumigation",
            "quantity": float(line.total_quantity or 0),
            "fumigation_id": fumigation.id,
            "notes": f"Producto utilizado en fumigación #{fumigation.order_number}",
        })


# ───────────────────────────── Queries ─────────────────────────────

def get_all_fumigations(
    status: Optional[str] = None,
    field_id=None,
    crop: Optional[str] = None,
    from_date=None,
    to_date=None,
    search_term: Optional[str] = None,
) -> list[dict]:
    query = Fumigation.query
    if status:
        query = query.filter(Fumigation.status == status)
    if field_id:
        query = query.filter(Fumigation.field_id == field_id)
    if crop:
        query = query.filter(Fumigation.crop == crop)
    if from_date:
        query = query.filter(or_(Fumigation.date.is_(None), Fumigation.date >= from_date))
    if to_date:
        query = query.filter(or_(Fumigation.date.is_(None), Fumigation.date <= to_date))
    if search_term:
        term = f"%{search_term.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Fumigation.establishment).like(term),
                func.lower(Fumigation.applicator).like(term),
                func.lower(Fumigation.lot).like(term),
                cast(Fumigation.order_number, String).like(term),
            )
        )
    rows = query.order_by(Fumigation.created_at.desc(), Fumigation.id.desc()).all()
    return [fumigation_to_domain(f) for f in rows]


def get_fumigation(fumigation_id) -> dict:
    return fumigation_to_domain(_get_fumigation_or_404(fumigation_id))


def get_fumigation_image(fumigation_id) -> bytes:
    fumigation = _get_fumigation_or_404(fumigation_id)
    if not fumigation.image_path:
        raise NotFoundError(f"La fumigación {fumigation_id} no tiene imagen.", fumigation_id=fumigation_id)
    return get_blob_store().download(FUMIGATION_IMAGES, fumigation.image_path)


# ───────────────────────────── Mutations ─────────────────────────────

def create_fumigation(data: dict, image=None) -> int:
    header = _clean_header(data)
    lines = _clean_lines(pick(data, "products", "items"), header["surface"])

    with atomic():
        fumigation = Fumigation(order_number=next_order_number(), status="pending", **header)
        for line in lines:
            fumigation.products.append(FumigationProduct(**line))
        db.session.add(fumigation)
        db.session.flush()

    logger.info("Fumigation %s created with order number %s", fumigation.id, fumigation.order_number)

    if image is not None:
        _attach_image(fumigation, image)
    return fumigation.id


def update_fumigation(fumigation_id, data: dict, image=None) -> dict:
    """
    Edits an open order. Replaces the product lines when ``products`` is given;
    otherwise a new surface recomputes the existing lines.
    """
    fumigation = _get_fumigation_or_404(fumigation_id)
    if fumigation.status not in EDITABLE_STATUSES:
        raise InvalidTransitionError(
            f"Una fumigación en estado {fumigation.status} no se puede editar.",
            current=fumigation.status,
        )

    header = _clean_header(data, partial=True)
    surface = header.get("surface", fumigation.surface)
    raw_lines = pick(data, "products", "items")
    lines = _clean_lines(raw_lines, surface) if raw_lines is not None else None

    with atomic():
        for key, value in header.items():
            setattr(fumigation, key, value)

        if lines is not None:
            fumigation.products = [FumigationProduct(**line) for line in lines]
        elif "surface" in header:
            reconvert = bool(current_app.config.get("FUMIGATION_RECONVERT_ON_RECOMPUTE"))
            current = [
                {"dosePerHa": line.dose_per_ha, "doseUnit": line.dose_unit, "totalUnit": line.total_unit}
                for line in fumigation.products
            ]
            for line, updated in zip(fumigation.products, recompute_totals(current, surface, reconvert)):
                line.total_quantity = updated["totalQuantity"]
                line.total_unit = updated["totalUnit"]

    if image is not None:
        _attach_image(fumigation, image)
    return fumigation_to_domain(fumigation)


def update_fumigation_status(fumigation_id, new_status: str, completion_data: Optional[dict] = None, image=None) -> dict:
    if new_status not in FUMIGATION_STATUSES:
        raise ValidationError(f"Estado de fumigación desconocido: {new_status!r}.", field="status")

    fumigation = _get_fumigation_or_404(fumigation_id)
    if new_status not in TRANSITIONS.get(fumigation.status, ()):
        raise InvalidTransitionError(
            f"No se puede pasar de {fumigation.status} a {new_status}.",
            current=fumigation.status,
            requested=new_status,
        )

    completion_data = completion_data or {}
    with atomic():
        if "observations" in completion_data:
            fumigation.observations = (completion_data.get("observations") or "").strip() or None

        if new_status == "in_progress":
            fumigation.start_datetime = utcnow()
        elif new_status == "completed":
            fumigation.end_datetime = utcnow()
            _deduct_stock(fumigation)

        fumigation.status = new_status

    logger.info("Fumigation %s (order %s) -> %s", fumigation.id, fumigation.order_number, new_status)

    if image is not None and new_status == "completed":
        _attach_image(fumigation, image)
    return fumigation_to_domain(fumigation)


def delete_fumigation(fumigation_id) -> bool:
    """Removes the order and its lines; stock already consumed stays consumed."""
    fumigation = _get_fumigation_or_404(fumigation_id)
    image_path = fumigation.image_path

    with atomic():
        db.session.delete(fumigation)

    _remove_image(image_path)
    logger.info("Fumigation %s deleted", fumigation_id)
    return True
