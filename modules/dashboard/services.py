# -*- coding: utf-8 -*-
"""
Read-only aggregates for the dashboard and the stock / movements reports.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import timedelta
from typing import Optional

from flask import current_app

from extensions import db
from modules.common import utcnow
from modules.fumigations.models import Fumigation
from modules.purchases.models import Purchase
from modules.stock import ledger
from modules.stock.mapper import product_to_domain, to_timestamp
from modules.stock.models import Product, WarehouseStock
from modules.transfers.models import Transfer
from modules.warehouses.models import Warehouse

UNKNOWN_PRODUCT = "Producto desconocido"
UNKNOWN_WAREHOUSE = "Almacén desconocido"
NO_CATEGORY = "Sin categoría"


def _name_maps() -> tuple[dict, dict]:
    products = dict(db.session.query(Product.id, Product.name).all())
    warehouses = dict(db.session.query(Warehouse.id, Warehouse.name).all())
    return products, warehouses


def get_low_stock_products() -> list[dict]:
    rows = (
        Product.query.filter(Product.quantity <= Product.min_stock)
        .order_by(Product.quantity.asc(), Product.name.asc())
        .all()
    )
    return [product_to_domain(p) for p in rows]


def get_expiring_products(days: Optional[int] = None) -> list[dict]:
    days = current_app.config.get("EXPIRY_WARNING_DAYS", 30) if days is None else days
    limit = utcnow() + timedelta(days=int(days))
    rows = (
        Product.query.filter(Product.expiry_date.isnot(None), Product.expiry_date <= limit)
        .order_by(Product.expiry_date.asc())
        .all()
    )
    return [product_to_domain(p) for p in rows]


def get_dashboard_summary(recent_limit: int = 10) -> dict:
    products_by_id, warehouses_by_id = _name_maps()

    recent = ledger.get_stock_history(limit=recent_limit)
    for entry in recent:
        entry["productName"] = products_by_id.get(entry["productId"], UNKNOWN_PRODUCT)
        entry["warehouseName"] = warehouses_by_id.get(entry["warehouseId"], UNKNOWN_WAREHOUSE)

    return {
        "totalProducts": len(products_by_id),
        "totalWarehouses": Warehouse.query.filter(Warehouse.status == "active").count(),
        "totalStock": float(db.session.query(db.func.coalesce(db.func.sum(Product.quantity), 0.0)).scalar() or 0.0),
        "lowStockProducts": get_low_stock_products(),
        "expiringProducts": get_expiring_products(),
        "pendingTransfers": Transfer.query.filter(Transfer.status == "pending").count(),
        "pendingPurchases": Purchase.query.filter(Purchase.status.in_(("pending", "partial"))).count(),
        "pendingFumigations": Fumigation.query.filter(Fumigation.status.in_(("pending", "in_progress"))).count(),
        "recentActivity": recent,
    }


def generate_stock_report(warehouse_id=None, category: Optional[str] = None) -> dict:
    """
    Products with their per-warehouse stock and a per-category summary.
    With ``warehouse_id`` only products holding stock there are listed, and
    totals are taken from that warehouse alone.
    """
    if warehouse_id:
        ledger.get_warehouse_or_404(warehouse_id)

    query = Product.query
    if category:
        query = query.filter(Product.category == category)
    products = query.order_by(Product.name.asc()).all()

    cells: dict[int, list] = {}
    for cell in WarehouseStock.query.all():
        cells.setdefault(cell.product_id, []).append(cell)

    listed, summary = [], OrderedDict()
    for product in products:
        data = product_to_domain(product, cells.get(product.id, []))
        stock = data["warehouseStock"]
        if warehouse_id:
            if (stock.get(warehouse_id) or 0) <= 0:
                continue
            total = stock[warehouse_id]
        else:
            total = sum(stock.values())
        listed.append(data)

        bucket = summary.setdefault(product.category or NO_CATEGORY,
                                    {"totalProducts": 0, "totalStock": 0.0, "lowStockCount": 0})
        bucket["totalProducts"] += 1
        bucket["totalStock"] += total
        if total <= (product.min_stock or 0):
            bucket["lowStockCount"] += 1

    return {
        "timestamp": to_timestamp(utcnow()),
        "totalProducts": len(listed),
        "warehouseId": warehouse_id,
        "categoryFilter": category,
        "products": listed,
        "categorySummary": dict(summary),
    }


def generate_movements_report(from_date=None, to_date=None, product_id=None, warehouse_id=None,
                              type: Optional[str] = None) -> dict:
    history = ledger.get_stock_history(product_id, warehouse_id, type, from_date, to_date)
    products_by_id, warehouses_by_id = _name_maps()

    by_type: "OrderedDict[str, list]" = OrderedDict()
    for entry in history:
        entry["productName"] = products_by_id.get(entry["productId"], UNKNOWN_PRODUCT)
        entry["warehouseName"] = warehouses_by_id.get(entry["warehouseId"], UNKNOWN_WAREHOUSE)
        if entry.get("sourceWarehouseId"):
            entry["sourceWarehouseName"] = warehouses_by_id.get(entry["sourceWarehouseId"], UNKNOWN_WAREHOUSE)
        if entry.get("targetWarehouseId"):
            entry["targetWarehouseName"] = warehouses_by_id.get(entry["targetWarehouseId"], UNKNOWN_WAREHOUSE)
        by_type.setdefault(entry.get("type") or "unknown", []).append(entry)

    return {
        "timestamp": to_timestamp(utcnow()),
        "fromDate": to_timestamp(from_date),
        "toDate": to_timestamp(to_date),
        "productId": product_id,
        "warehouseId": warehouse_id,
        "type": type,
        "totalMovements": len(history),
        "movements": history,
        "movementsByType": dict(by_type),
    }
