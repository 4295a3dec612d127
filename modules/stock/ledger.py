# -*- coding: utf-8 -*-
"""
Stock ledger: the only place that changes a (product, warehouse) stock cell
as a side effect of a workflow.

Every ``apply_delta`` does three writes (cell, product aggregate, history row)
inside the caller's session. None of the functions here commit: the workflow
service wraps the whole logical operation in ``modules.common.atomic`` so the
three writes land together or not at all.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func

from extensions import db
from modules.errors import InsufficientStockError, NotFoundError, ValidationError
from modules.warehouses.models import Warehouse
from .mapper import history_from_domain, history_to_domain
from .models import HISTORY_TYPES, Product, StockHistory, WarehouseStock

logger = logging.getLogger(__name__)

# Same tolerance the receiving screens use when comparing float quantities
EPSILON = 1e-9


# ───────────────────────────── Reads ─────────────────────────────

def get_product_or_404(product_id) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"El producto {product_id} no existe.", product_id=product_id)
    return product


def get_warehouse_or_404(warehouse_id) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError(f"El almacén {warehouse_id} no existe.", warehouse_id=warehouse_id)
    return warehouse


def get_cell(product_id, warehouse_id, *, lock: bool = False) -> Optional[WarehouseStock]:
    query = WarehouseStock.query.filter_by(product_id=product_id, warehouse_id=warehouse_id)
    if lock:
        # Row lock on PostgreSQL; ignored by SQLite
        query = query.with_for_update()
    return query.first()


def get_cell_quantity(product_id, warehouse_id) -> float:
    cell = get_cell(product_id, warehouse_id)
    return float(cell.quantity) if cell is not None else 0.0


def sum_cells(product_id) -> float:
    total = (
        db.session.query(func.coalesce(func.sum(WarehouseStock.quantity), 0.0))
        .filter(WarehouseStock.product_id == product_id)
        .scalar()
    )
    return float(total or 0.0)


def check_sufficiency(product_id, warehouse_id, quantity) -> float:
    """
    Raises InsufficientStockError when ``quantity`` exceeds the cell.
    Returns the quantity available at check time.
    """
    available = get_cell_quantity(product_id, warehouse_id)
    if float(quantity) - available > EPSILON:
        product = db.session.get(Product, product_id)
        name = product.name if product is not None else product_id
        raise InsufficientStockError(
            f"Stock insuficiente para el producto {name} en el almacén {warehouse_id} "
            f"(disponible {available:g}, solicitado {float(quantity):g}).",
            product_id=product_id,
            warehouse_id=warehouse_id,
            requested=float(quantity),
            available=available,
        )
    return available


# ───────────────────────────── Writes ─────────────────────────────

def recompute_product_quantity(product: Product) -> float:
    """product.quantity := sum of its cells."""
    db.session.flush()
    product.quantity = sum_cells(product.id)
    return product.quantity


def add_history_entry(entry_data: dict) -> StockHistory:
    """Appends one history row; camelCase or snake_case keys are accepted."""
    row = history_from_domain(entry_data)
    if not row.get("product_id"):
        raise ValidationError("La entrada de historial requiere un producto.")
    if row.get("type") not in HISTORY_TYPES:
        raise ValidationError(f"Tipo de movimiento desconocido: {row.get('type')!r}.")
    entry = StockHistory(**row)
    db.session.add(entry)
    db.session.flush()
    return entry


def apply_delta(product_id, warehouse_id, delta, history_meta: Optional[dict] = None) -> StockHistory:
    """
    Adds ``delta`` to one stock cell, clamping at zero.

    Over-consumption is absorbed by the clamp, never rejected here; callers
    that care run ``check_sufficiency`` first. Returns the history row.
    """
    product = get_product_or_404(product_id)
    get_warehouse_or_404(warehouse_id)
    delta = float(delta)

    previous_total = sum_cells(product.id)

    cell = get_cell(product.id, warehouse_id, lock=True)
    current = float(cell.quantity) if cell is not None else 0.0
    new_value = max(0.0, current + delta)

    if cell is None:
        if new_value > 0:
            product.stock.append(WarehouseStock(warehouse_id=warehouse_id, quantity=new_value))
    else:
        cell.quantity = new_value

    new_total = recompute_product_quantity(product)

    meta = dict(history_meta or {})
    meta.setdefault("type", "update")
    meta.setdefault("warehouse_id", warehouse_id)
    meta.setdefault("quantity", abs(delta))
    meta["product_id"] = product.id
    meta["previous_quantity"] = previous_total
    meta["new_quantity"] = new_total

    if current + delta < 0:
        logger.warning(
            "Stock clamped at zero: product=%s warehouse=%s current=%s delta=%s",
            product.id, warehouse_id, current, delta,
        )

    return add_history_entry(meta)


# ───────────────────────────── History queries ─────────────────────────────

def get_stock_history(
    product_id=None,
    warehouse_id=None,
    type: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[dict]:
    """Newest first; ``limit`` caps the rows fetched."""
    query = StockHistory.query
    if product_id:
        query = query.filter(StockHistory.product_id == product_id)
    if warehouse_id:
        query = query.filter(StockHistory.warehouse_id == warehouse_id)
    if type:
        query = query.filter(StockHistory.type == type)
    if from_date:
        query = query.filter(StockHistory.timestamp >= from_date)
    if to_date:
        query = query.filter(StockHistory.timestamp <= to_date)

    query = query.order_by(StockHistory.timestamp.desc(), StockHistory.id.desc())
    if limit is not None:
        query = query.limit(max(int(limit), 0))
    return [history_to_domain(r) for r in query.all()]


# ───────────────────────────── Maintenance ─────────────────────────────

def recompute_all_quantities() -> list[tuple[int, float, float]]:
    """
    Re-derives every product aggregate from its cells.
    Returns (product_id, stored, recomputed) for each product that had drifted.
    Flushes only; the caller commits.
    """
    drifted = []
    for product in Product.query.order_by(Product.id).all():
        stored = float(product.quantity or 0.0)
        actual = sum_cells(product.id)
        if abs(stored - actual) > EPSILON:
            product.quantity = actual
            drifted.append((product.id, stored, actual))
    db.session.flush()
    if drifted:
        logger.warning("Recomputed %d drifted product aggregate(s)", len(drifted))
    return drifted
