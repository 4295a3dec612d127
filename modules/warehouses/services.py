# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Optional

from extensions import db
from modules.common import atomic, to_float, to_int
from modules.errors import NotFoundError, ValidationError
from modules.fields.models import Field
from modules.stock import ledger
from modules.stock.mapper import warehouse_from_domain, warehouse_to_domain
from modules.stock.models import Product, WarehouseStock
from .models import WAREHOUSE_STATUSES, WAREHOUSE_TYPES, Warehouse

logger = logging.getLogger(__name__)


# ───────────────────────────── Helpers ─────────────────────────────

def _clean_row(data: dict, *, creating: bool, current: Optional[Warehouse] = None) -> dict:
    row = warehouse_from_domain(data)

    if creating or "name" in row:
        name = " ".join(str(row.get("name") or "").split())
        if not name:
            raise ValidationError("El nombre del almacén es obligatorio.", field="name")
        clash = Warehouse.query.filter(db.func.lower(Warehouse.name) == name.lower())
        if current is not None:
            clash = clash.filter(Warehouse.id != current.id)
        if clash.first() is not None:
            raise ValidationError(f"Ya existe un almacén llamado '{name}'.", field="name")
        row["name"] = name

    if creating or "type" in row:
        row["type"] = row.get("type") or "central"
        if row["type"] not in WAREHOUSE_TYPES:
            raise ValidationError(f"Tipo de almacén desconocido: {row['type']!r}.", field="type")
    if creating or "status" in row:
        row["status"] = row.get("status") or "active"
        if row["status"] not in WAREHOUSE_STATUSES:
            raise ValidationError(f"Estado de almacén desconocido: {row['status']!r}.", field="status")

    if "capacity" in row:
        row["capacity"] = None if row["capacity"] in (None, "") else to_float(row["capacity"], "capacity", minimum=0)

    if "field_id" in row:
        if row["field_id"] in (None, ""):
            row["field_id"] = None
        else:
            field_id = to_int(row["field_id"], "fieldId")
            if db.session.get(Field, field_id) is None:
                raise NotFoundError(f"El campo {field_id} no existe.", field_id=field_id)
            row["field_id"] = field_id
    return row


# ───────────────────────────── Queries ─────────────────────────────

def get_all_warehouses(status: Optional[str] = None, type: Optional[str] = None, field_id=None) -> list[dict]:
    query = Warehouse.query
    if status:
        query = query.filter(Warehouse.status == status)
    if type:
        query = query.filter(Warehouse.type == type)
    if field_id:
        query = query.filter(Warehouse.field_id == field_id)
    return [warehouse_to_domain(w) for w in query.order_by(Warehouse.name.asc()).all()]


def get_warehouse(warehouse_id) -> dict:
    return warehouse_to_domain(ledger.get_warehouse_or_404(warehouse_id))


def get_warehouse_stock(warehouse_id) -> list[dict]:
    """What one warehouse holds: one row per product with a cell there."""
    warehouse = ledger.get_warehouse_or_404(warehouse_id)
    rows = (
        db.session.query(WarehouseStock, Product)
        .join(Product, Product.id == WarehouseStock.product_id)
        .filter(WarehouseStock.warehouse_id == warehouse.id)
        .order_by(Product.name.asc())
        .all()
    )
    return [
        {
            "productId": product.id,
            "productName": product.name,
            "category": product.category,
            "unitOfMeasure": product.unit_of_measure,
            "quantity": cell.quantity,
        }
        for cell, product in rows
    ]


# ───────────────────────────── Mutations ─────────────────────────────

def create_warehouse(data: dict) -> int:
    row = _clean_row(data, creating=True)
    with atomic():
        warehouse = Warehouse(**row)
        db.session.add(warehouse)
        db.session.flush()
    logger.info("Warehouse %s created: %s", warehouse.id, warehouse.name)
    return warehouse.id


def update_warehouse(warehouse_id, data: dict) -> dict:
    warehouse = ledger.get_warehouse_or_404(warehouse_id)
    row = _clean_row(data, creating=False, current=warehouse)
    with atomic():
        for key, value in row.items():
            setattr(warehouse, key, value)
    return warehouse_to_domain(warehouse)


def delete_warehouse(warehouse_id) -> bool:
    """Refused while the warehouse still holds stock; empty cells go with it."""
    warehouse = ledger.get_warehouse_or_404(warehouse_id)

    with atomic():
        cells = WarehouseStock.query.filter_by(warehouse_id=warehouse.id).with_for_update().all()
        holding = [c for c in cells if (c.quantity or 0) > ledger.EPSILON]
        if holding:
            raise ValidationError(
                f"El almacén '{warehouse.name}' todavía tiene stock de {len(holding)} producto(s).",
                warehouse_id=warehouse.id,
                product_ids=[c.product_id for c in holding],
            )
        for cell in cells:
            db.session.delete(cell)
        db.session.flush()
        db.session.delete(warehouse)

    logger.info("Warehouse %s deleted (%d empty cell(s) removed)", warehouse_id, len(cells))
    return True
