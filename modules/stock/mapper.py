# -*- coding: utf-8 -*-
"""
Translation between the store's row shape (snake_case, flat, raw datetimes)
and the API shape (camelCase, nested ``warehouseStock``, ``{seconds, nanoseconds}``
timestamps). Pure functions, no session access.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable, Optional


# ───────────────────────────── Timestamps ─────────────────────────────

def to_timestamp(value: Optional[datetime]) -> Optional[dict]:
    """datetime (naive = UTC) → {"seconds", "nanoseconds"}; None passes through."""
    if value is None:
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return {"seconds": int(value.timestamp()), "nanoseconds": 0}


def from_timestamp(value) -> Optional[datetime]:
    """
    Accepts the {seconds, nanoseconds} tuple, ISO strings, dates and datetimes.
    Returns naive UTC, which is what the columns store.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        seconds = value.get("seconds")
        if seconds is None:
            raise ValueError(f"Timestamp sin 'seconds': {value!r}")
        nanos = value.get("nanoseconds") or 0
        dt = datetime.fromtimestamp(float(seconds) + nanos / 1e9, tz=timezone.utc)
        return dt.replace(tzinfo=None)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return from_timestamp(datetime.fromisoformat(raw))
    raise ValueError(f"Formato de fecha no soportado: {value!r}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ───────────────────────────── Products ─────────────────────────────

def warehouse_stock_map(stock_rows: Iterable) -> dict:
    """Stock cells → {warehouse_id: quantity}."""
    return {row.warehouse_id: row.quantity for row in stock_rows}


def product_to_domain(product, stock_rows: Optional[Iterable] = None) -> dict:
    rows = product.stock if stock_rows is None else stock_rows
    out = {
        "id": product.id,
        "name": product.name,
        "category": product.category,
        "quantity": product.quantity or 0,
        "minStock": product.min_stock or 0,
        "unitOfMeasure": product.unit_of_measure or "unidad",
        "lotNumber": product.lot_number or "",
        "notes": product.notes or "",
        "warehouseStock": warehouse_stock_map(rows),
    }
    if product.expiry_date:
        out["expiryDate"] = to_timestamp(product.expiry_date)
    if product.created_at:
        out["createdAt"] = to_timestamp(product.created_at)
    if product.updated_at:
        out["updatedAt"] = to_timestamp(product.updated_at)
    return out


_PRODUCT_FIELDS = {
    "name": "name",
    "category": "category",
    "minStock": "min_stock",
    "unitOfMeasure": "unit_of_measure",
    "lotNumber": "lot_number",
    "notes": "notes",
}


def product_from_domain(data: dict) -> dict:
    """Only keys present in ``data`` end up in the result (patch semantics)."""
    row = {}
    for camel, snake in _PRODUCT_FIELDS.items():
        if camel in data:
            row[snake] = data[camel]
        elif snake in data:
            row[snake] = data[snake]
    for key in ("expiryDate", "expiry_date"):
        if key in data:
            row["expiry_date"] = from_timestamp(data[key])
            break
    return row


def warehouse_stock_from_domain(data: dict) -> Optional[dict]:
    """The raw {warehouse_id: quantity} payload; None when the key is absent."""
    return data.get("warehouseStock", data.get("warehouse_stock"))


# ───────────────────────────── Warehouses ─────────────────────────────

_WAREHOUSE_FIELDS = {
    "name": "name",
    "location": "location",
    "type": "type",
    "fieldId": "field_id",
    "storageCondition": "storage_condition",
    "capacity": "capacity",
    "capacityUnit": "capacity_unit",
    "supervisor": "supervisor",
    "notes": "notes",
    "status": "status",
}


def warehouse_to_domain(warehouse) -> dict:
    out = {camel: getattr(warehouse, snake) for camel, snake in _WAREHOUSE_FIELDS.items()}
    out["id"] = warehouse.id
    out["createdAt"] = to_timestamp(warehouse.created_at)
    out["updatedAt"] = to_timestamp(warehouse.updated_at)
    return out


def warehouse_from_domain(data: dict) -> dict:
    row = {}
    for camel, snake in _WAREHOUSE_FIELDS.items():
        if camel in data:
            row[snake] = data[camel]
        elif snake in data:
            row[snake] = data[snake]
    return row


# ───────────────────────────── History ─────────────────────────────

_HISTORY_FIELDS = {
    "productId": "product_id",
    "type": "type",
    "previousQuantity": "previous_quantity",
    "newQuantity": "new_quantity",
    "quantity": "quantity",
    "warehouseId": "warehouse_id",
    "sourceWarehouseId": "source_warehouse_id",
    "targetWarehouseId": "target_warehouse_id",
    "transferId": "transfer_id",
    "purchaseId": "purchase_id",
    "fumigationId": "fumigation_id",
    "userId": "user_id",
    "notes": "notes",
}


def history_to_domain(entry) -> dict:
    out = {"id": entry.id}
    for camel, snake in _HISTORY_FIELDS.items():
        out[camel] = getattr(entry, snake)
    out["timestamp"] = to_timestamp(entry.timestamp)
    return out


def history_from_domain(data: dict) -> dict:
    row = {}
    for camel, snake in _HISTORY_FIELDS.items():
        value = data.get(camel, data.get(snake))
        if value is not None:
            row[snake] = value
    row.setdefault("previous_quantity", 0)
    row.setdefault("new_quantity", 0)
    return row


# ───────────────────────────── Workflows ─────────────────────────────

def transfer_to_domain(transfer) -> dict:
    return {
        "id": transfer.id,
        "sourceWarehouseId": transfer.source_warehouse_id,
        "targetWarehouseId": transfer.target_warehouse_id,
        "products": [dict(item) for item in (transfer.items or [])],
        "status": transfer.status,
        "notes": transfer.notes or "",
        "createdAt": to_timestamp(transfer.created_at),
        "updatedAt": to_timestamp(transfer.updated_at),
        "completedAt": to_timestamp(transfer.completed_at),
    }


def purchase_to_domain(purchase) -> dict:
    return {
        "id": purchase.id,
        "supplier": purchase.supplier,
        "invoice": purchase.invoice,
        "products": [dict(item) for item in (purchase.items or [])],
        "shippingCost": purchase.shipping_cost or 0,
        "totalCost": purchase.total_cost or 0,
        "status": purchase.status,
        "notes": purchase.notes or "",
        "createdAt": to_timestamp(purchase.created_at),
        "updatedAt": to_timestamp(purchase.updated_at),
        "completedAt": to_timestamp(purchase.completed_at),
    }


def fumigation_product_to_domain(line) -> dict:
    return {
        "id": line.id,
        "productId": line.product_id,
        "warehouseId": line.warehouse_id,
        "dosePerHa": line.dose_per_ha,
        "doseUnit": line.dose_unit,
        "totalQuantity": line.total_quantity,
        "totalUnit": line.total_unit,
    }


def fumigation_to_domain(fumigation) -> dict:
    return {
        "id": fumigation.id,
        "orderNumber": fumigation.order_number,
        "date": to_timestamp(fumigation.date),
        "establishment": fumigation.establishment,
        "applicator": fumigation.applicator,
        "fieldId": fumigation.field_id,
        "crop": fumigation.crop,
        "lot": fumigation.lot,
        "surface": fumigation.surface,
        "products": [fumigation_product_to_domain(p) for p in fumigation.products],
        "observations": fumigation.observations or "",
        "imagePath": fumigation.image_path,
        "status": fumigation.status,
        "startDatetime": to_timestamp(fumigation.start_datetime),
        "endDatetime": to_timestamp(fumigation.end_datetime),
        "createdAt": to_timestamp(fumigation.created_at),
        "updatedAt": to_timestamp(fumigation.updated_at),
    }


# ───────────────────────────── Fields / users ─────────────────────────────

def field_to_domain(field) -> dict:
    return {
        "id": field.id,
        "name": field.name,
        "location": field.location,
        "area": field.area,
        "areaUnit": field.area_unit,
        "owner": field.owner,
        "notes": field.notes,
        "lots": [dict(lot) for lot in (field.lots or [])],
        "createdAt": to_timestamp(field.created_at),
        "updatedAt": to_timestamp(field.updated_at),
    }


def user_to_domain(user) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "displayName": user.display_name,
        "role": user.role,
        "permissions": dict(user.permissions or {}),
        "createdAt": to_timestamp(user.created_at),
        "lastLogin": _iso(user.last_login),
    }
