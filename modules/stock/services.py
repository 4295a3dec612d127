# -*- coding: utf-8 -*-
"""
Product catalogue operations. Each public function is one logical operation
and one transaction.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import String, cast, or_

from extensions import db
from modules.common import atomic, to_float, to_int
from modules.errors import ValidationError
from . import ledger
from .mapper import product_from_domain, product_to_domain, warehouse_stock_from_domain
from .models import Product, WarehouseStock

logger = logging.getLogger(__name__)


# ───────────────────────────── Helpers ─────────────────────────────

def _clean_stock_map(raw: dict) -> dict[int, float]:
    """Validates a {warehouse_id: quantity} payload before any write."""
    if not isinstance(raw, dict):
        raise ValidationError("'warehouseStock' debe ser un objeto {almacén: cantidad}.", field="warehouseStock")
    out = {}
    for key, quantity in raw.items():
        warehouse_id = to_int(key, "warehouseStock")
        ledger.get_warehouse_or_404(warehouse_id)
        value = 0.0 if quantity == "" else to_float(quantity, "warehouseStock", minimum=0)
        out[warehouse_id] = value
    return out


def _row_from(data: dict) -> dict:
    try:
        return product_from_domain(data)
    except ValueError as exc:
        raise ValidationError(str(exc), field="expiryDate") from None


def _validate_product_row(row: dict, *, creating: bool) -> None:
    if creating or "name" in row:
        name = str(row.get("name") or "").strip()
        if not name:
            raise ValidationError("El nombre del producto es obligatorio.", field="name")
        row["name"] = name
    if "min_stock" in row:
        row["min_stock"] = 0.0 if row["min_stock"] in (None, "") else to_float(row["min_stock"], "minStock", minimum=0)
    if "unit_of_measure" in row:
        row["unit_of_measure"] = str(row["unit_of_measure"] or "").strip() or "unidad"


# ───────────────────────────── Queries ─────────────────────────────

def get_all_products(category: Optional[str] = None, min_stock=None, search_term: Optional[str] = None) -> list[dict]:
    query = Product.query
    if category:
        query = query.filter(Product.category == category)
    if min_stock not in (None, ""):
        query = query.filter(Product.quantity <= to_float(min_stock, "minStock"))
    if search_term:
        term = f"%{search_term.strip().lower()}%"
        query = query.filter(
            or_(
                db.func.lower(Product.name).like(term),
                cast(Product.id, String).like(term),
                db.func.lower(db.func.coalesce(Product.lot_number, "")).like(term),
            )
        )
    products = query.order_by(Product.name.asc()).all()
    return [product_to_domain(p) for p in products]


def get_product(product_id) -> dict:
    return product_to_domain(ledger.get_product_or_404(product_id))


# ───────────────────────────── Mutations ─────────────────────────────

def create_product(data: dict) -> int:
    """Creates a product with its initial warehouse assignment."""
    row = _row_from(data)
    _validate_product_row(row, creating=True)
    stock_map = _clean_stock_map(warehouse_stock_from_domain(data) or {})

    with atomic():
        product = Product(**row)
        for warehouse_id, quantity in stock_map.items():
            product.stock.append(WarehouseStock(warehouse_id=warehouse_id, quantity=quantity))
        db.session.add(product)
        db.session.flush()
        ledger.recompute_product_quantity(product)

        ledger.add_history_entry({
            "product_id": product.id,
            "type": "create",
            "previous_quantity": 0,
            "new_quantity": product.quantity,
            "warehouse_id": next(iter(stock_map), None),
            "notes": "Producto creado",
        })

    logger.info("Product %s created with quantity %s", product.id, product.quantity)
    return product.id


def update_product(product_id, data: dict) -> int:
    """
    Patches the product. When ``warehouseStock`` is supplied the cells are
    synchronised to it and the aggregate recomputed; the aggregate is never
    taken from the payload.
    """
    product = ledger.get_product_or_404(product_id)
    row = _row_from(data)
    _validate_product_row(row, creating=False)
    raw_stock = warehouse_stock_from_domain(data)
    stock_map = _clean_stock_map(raw_stock) if raw_stock is not None else None

    with atomic():
        previous_quantity = product.quantity or 0.0
        for key, value in row.items():
            setattr(product, key, value)

        if stock_map is not None:
            current = {cell.warehouse_id: cell for cell in product.stock}
            for warehouse_id, quantity in stock_map.items():
                cell = current.get(warehouse_id)
                if cell is not None:
                    if cell.quantity != quantity:
                        cell.quantity = quantity
                elif quantity > 0:
                    product.stock.append(WarehouseStock(warehouse_id=warehouse_id, quantity=quantity))
            for warehouse_id, cell in current.items():
                if warehouse_id not in stock_map:
                    product.stock.remove(cell)

        new_quantity = ledger.recompute_product_quantity(product)

        if abs(new_quantity - previous_quantity) > ledger.EPSILON:
            ledger.add_history_entry({
                "product_id": product.id,
                "type": "update",
                "previous_quantity": previous_quantity,
                "new_quantity": new_quantity,
                "notes": data.get("historyNotes") or "Actualización manual de cantidad",
            })

    return product.id


def delete_product(product_id) -> bool:
    """Clears the stock bookkeeping, records the deletion, removes the product."""
    product = ledger.get_product_or_404(product_id)

    with atomic():
        previous_quantity = product.quantity or 0.0
        for cell in list(product.stock):
            product.stock.remove(cell)
        db.session.flush()

        ledger.add_history_entry({
            "product_id": product.id,
            "type": "delete",
            "previous_quantity": previous_quantity,
            "new_quantity": 0,
            "notes": "Producto eliminado",
        })
        db.session.delete(product)

    logger.info("Product %s deleted (had %s)", product_id, previous_quantity)
    return True
