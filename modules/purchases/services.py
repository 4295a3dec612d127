# -*- coding: utf-8 -*-
"""
Purchases: creation with cost totals, and receipts that raise stock only by
the quantity actually received in each call.

A receipt batch is validated completely before the first write, so a
rejected batch leaves the purchase, the stock cells and both histories
untouched.
"""

from __future__ import annotations

import copy
import logging
from typing import Optional

from sqlalchemy import text

from extensions import db
from modules.common import atomic, pick, to_float, to_int, utcnow
from modules.errors import NotFoundError, OverReceiptError, ValidationError
from modules.stock import ledger
from modules.stock.mapper import purchase_to_domain
from modules.stock.models import Product
from .models import PURCHASE_STATUSES, Purchase, PurchaseHistory

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_NAME = "Producto sin nombre"
DEFAULT_CATEGORY = "Sin categoría"


# ───────────────────────────── Helpers ─────────────────────────────

def _get_purchase_or_404(purchase_id) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"La compra {purchase_id} no existe.", purchase_id=purchase_id)
    return purchase


def _clean_purchase_lines(raw) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Se requiere al menos un producto para la compra.", field="products")

    lines, seen = [], set()
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Línea {idx}: formato inválido.", field="products")
        product_id = to_int(pick(item, "productId", "product_id"), "productId")
        if product_id in seen:
            raise ValidationError(f"El producto {product_id} aparece más de una vez en la compra.",
                                  field="products", product_id=product_id)
        seen.add(product_id)

        line = {k: v for k, v in item.items() if k not in ("product_id", "unit_price")}
        line["productId"] = product_id
        line["quantity"] = to_float(item.get("quantity"), "quantity", positive=True)
        line["unitPrice"] = to_float(pick(item, "unitPrice", "unit_price", default=0), "unitPrice", minimum=0)
        line["received"] = 0.0
        line["status"] = "pending"
        lines.append(line)
    return lines


def _line_status(line: dict) -> str:
    if abs(float(line["received"]) - float(line["quantity"])) <= ledger.EPSILON:
        return "completed"
    return "partial" if float(line["received"]) > 0 else "pending"


def _sync_pk_sequence() -> None:
    """After inserting a product with an explicit id, keep PostgreSQL's serial ahead of it."""
    if db.session.get_bind().dialect.name != "postgresql":
        return
    db.session.execute(text(
        "SELECT setval(pg_get_serial_sequence('products', 'id'), "
        "(SELECT COALESCE(MAX(id), 1) FROM products))"
    ))


def _ensure_catalogue_product(product_id: int, received: dict, line: dict) -> Product:
    """Receiving a product the catalogue does not know yet creates it."""
    product = db.session.get(Product, product_id)
    if product is not None:
        return product

    product = Product(
        id=product_id,
        name=pick(received, "name", "productName") or pick(line, "name", "productName") or DEFAULT_PRODUCT_NAME,
        category=pick(received, "category") or pick(line, "category") or DEFAULT_CATEGORY,
        unit_of_measure=pick(received, "unitOfMeasure", "unit") or pick(line, "unitOfMeasure", "unit") or "unidad",
        quantity=0.0,
        min_stock=0.0,
    )
    db.session.add(product)
    db.session.flush()
    _sync_pk_sequence()
    logger.info("Product %s auto-created from purchase receipt", product_id)
    return product


# ───────────────────────────── Queries ─────────────────────────────

def get_all_purchases(status: Optional[str] = None) -> list[dict]:
    query = Purchase.query
    if status:
        if status not in PURCHASE_STATUSES:
            raise ValidationError(f"Estado de compra desconocido: {status!r}.", field="status")
        query = query.filter(Purchase.status == status)
    rows = query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()
    return [purchase_to_domain(p) for p in rows]


def get_purchase(purchase_id) -> dict:
    return purchase_to_domain(_get_purchase_or_404(purchase_id))


def get_purchase_history(purchase_id) -> list[dict]:
    purchase = _get_purchase_or_404(purchase_id)
    return [entry.as_dict() for entry in purchase.history]


# ───────────────────────────── Mutations ─────────────────────────────

def create_purchase(data: dict) -> int:
    lines = _clean_purchase_lines(pick(data, "products", "items"))
    invoice = str(data.get("invoice") or "").strip()
    if not invoice:
        raise ValidationError("Se requiere el número de factura.", field="invoice")
    shipping_cost = to_float(pick(data, "shippingCost", "shipping_cost", default=0), "shippingCost", minimum=0)

    total_cost = sum(line["quantity"] * line["unitPrice"] for line in lines) + shipping_cost
    notes = (data.get("notes") or "").strip() or None

    with atomic():
        purchase = Purchase(
            supplier=(data.get("supplier") or "").strip() or None,
            invoice=invoice,
            items=lines,
            shipping_cost=shipping_cost,
            total_cost=total_cost,
            status="pending",
            notes=notes,
        )
        db.session.add(purchase)
        db.session.flush()

        db.session.add(PurchaseHistory(
            purchase_id=purchase.id,
            type="create",
            details={
                "supplier": purchase.supplier,
                "invoice": invoice,
                "products": lines,
                "shippingCost": shipping_cost,
                "totalCost": total_cost,
                "status": "pending",
            },
            status="pending",
            notes=notes or "Compra creada",
        ))

    logger.info("Purchase %s created (invoice=%s, total=%.2f)", purchase.id, invoice, total_cost)
    return purchase.id


def receive_purchase(purchase_id, warehouse_id, lines, notes: Optional[str] = None) -> dict:
    """
    Applies one receipt batch ``[{productId, quantity, ...}]`` into ``warehouse_id``.
    Returns the updated purchase.
    """
    purchase = _get_purchase_or_404(purchase_id)
    if warehouse_id in (None, ""):
        raise ValidationError("Se requiere el almacén de recepción.", field="warehouseId")
    warehouse_id = to_int(warehouse_id, "warehouseId")
    ledger.get_warehouse_or_404(warehouse_id)
    if not isinstance(lines, list) or not lines:
        raise ValidationError("Se requiere al menos un producto para recibir.", field="products")

    # Pass 1: validate the whole batch against a working copy
    updated = copy.deepcopy(purchase.items or [])
    by_product = {int(line["productId"]): line for line in updated}
    batch = []
    for received in lines:
        if not isinstance(received, dict):
            raise ValidationError("Formato de recepción inválido.", field="products")
        product_id = to_int(pick(received, "productId", "product_id"), "productId")
        quantity = to_float(received.get("quantity"), "quantity", positive=True)

        line = by_product.get(product_id)
        if line is None:
            raise NotFoundError(f"El producto {product_id} no existe en la compra {purchase.id}.",
                                product_id=product_id, purchase_id=purchase.id)
        pending = float(line["quantity"]) - float(line.get("received") or 0)
        if quantity - pending > ledger.EPSILON:
            raise OverReceiptError(
                f"La cantidad recibida ({quantity:g}) para el producto {product_id} "
                f"excede la cantidad pendiente ({pending:g}).",
                product_id=product_id, requested=quantity, pending=pending,
            )
        line["received"] = float(line.get("received") or 0) + quantity
        line["status"] = _line_status(line)
        batch.append((product_id, quantity, received, line))

    # Pass 2: write
    with atomic():
        for product_id, quantity, received, line in batch:
            _ensure_catalogue_product(product_id, received, line)
            ledger.apply_delta(product_id, warehouse_id, quantity, {
                "type": "purchase_receive",
                "purchase_id": purchase.id,
                "quantity": quantity,
                "notes": notes or "Recepción de productos de compra",
            })

        all_completed = all(line.get("status") == "completed" for line in updated)
        status = "completed" if all_completed else "partial"

        purchase.items = updated
        purchase.status = status
        purchase.completed_at = utcnow() if all_completed else None

        db.session.add(PurchaseHistory(
            purchase_id=purchase.id,
            type="receive",
            warehouse_id=warehouse_id,
            products=[{"productId": pid, "quantity": qty} for pid, qty, _, _ in batch],
            status=status,
            notes=notes or "Recepción de productos",
        ))

    logger.info("Purchase %s received %d line(s) into warehouse %s, status=%s",
                purchase.id, len(batch), warehouse_id, status)
    return purchase_to_domain(purchase)
