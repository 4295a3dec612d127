# -*- coding: utf-8 -*-
"""
Transfers between warehouses.

Sufficiency at the source is checked for every line before anything is
written, at creation and again at completion (stock may have moved in
between). Completion moves stock through two ledger legs per line, so each
line leaves two history rows: the source leg and the target leg.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional

from extensions import db
from modules.common import atomic, pick, to_float, to_int, utcnow
from modules.errors import InvalidTransitionError, NotFoundError, ValidationError
from modules.stock import ledger
from modules.stock.mapper import transfer_to_domain
from .models import TERMINAL_STATUSES, TRANSFER_STATUSES, Transfer

logger = logging.getLogger(__name__)


# ───────────────────────────── Helpers ─────────────────────────────

def _clean_items(raw) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("La transferencia debe incluir al menos un producto.", field="products")
    items = []
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Línea {idx}: formato inválido.", field="products")
        product_id = to_int(pick(item, "productId", "product_id"), "productId")
        quantity = to_float(item.get("quantity"), "quantity", positive=True)
        ledger.get_product_or_404(product_id)
        items.append({"productId": product_id, "quantity": quantity})
    return items


def _requested_per_product(items: list[dict]) -> "OrderedDict[int, float]":
    """Several lines for the same product draw from the same cell."""
    totals: "OrderedDict[int, float]" = OrderedDict()
    for item in items:
        totals[item["productId"]] = totals.get(item["productId"], 0.0) + float(item["quantity"])
    return totals


def _check_source_stock(items: list[dict], source_warehouse_id: int) -> None:
    for product_id, quantity in _requested_per_product(items).items():
        ledger.check_sufficiency(product_id, source_warehouse_id, quantity)


def _move_stock(transfer: Transfer, history_type: str) -> None:
    """Source leg then target leg for every line."""
    for item in transfer.items or []:
        product_id = int(item["productId"])
        quantity = float(item["quantity"])
        meta = {
            "type": history_type,
            "quantity": quantity,
            "source_warehouse_id": transfer.source_warehouse_id,
            "target_warehouse_id": transfer.target_warehouse_id,
            "transfer_id": transfer.id,
            "user_id": transfer.user_id,
            "notes": transfer.notes or f"Transferencia #{transfer.id}",
        }
        ledger.apply_delta(product_id, transfer.source_warehouse_id, -quantity,
                           dict(meta, warehouse_id=transfer.source_warehouse_id))
        ledger.apply_delta(product_id, transfer.target_warehouse_id, quantity,
                           dict(meta, warehouse_id=transfer.target_warehouse_id))


def _get_transfer_or_404(transfer_id) -> Transfer:
    transfer = db.session.get(Transfer, transfer_id)
    if transfer is None:
        raise NotFoundError(f"La transferencia {transfer_id} no existe.", transfer_id=transfer_id)
    return transfer


# ───────────────────────────── Queries ─────────────────────────────

def get_all_transfers(status: Optional[str] = None) -> list[dict]:
    query = Transfer.query
    if status:
        query = query.filter(Transfer.status == status)
    rows = query.order_by(Transfer.created_at.desc(), Transfer.id.desc()).all()
    return [transfer_to_domain(t) for t in rows]


def get_transfer(transfer_id) -> dict:
    return transfer_to_domain(_get_transfer_or_404(transfer_id))


# ───────────────────────────── Mutations ─────────────────────────────

def create_transfer(data: dict) -> int:
    source_raw = pick(data, "sourceWarehouseId", "source_warehouse_id")
    target_raw = pick(data, "targetWarehouseId", "target_warehouse_id")
    if source_raw in (None, "") or target_raw in (None, ""):
        raise ValidationError("Debe indicar el almacén de origen y el de destino.")
    source_id = to_int(source_raw, "sourceWarehouseId")
    target_id = to_int(target_raw, "targetWarehouseId")
    if source_id == target_id:
        raise ValidationError("El almacén de origen y el de destino deben ser distintos.")
    ledger.get_warehouse_or_404(source_id)
    ledger.get_warehouse_or_404(target_id)

    status = data.get("status") or "pending"
    if status not in TRANSFER_STATUSES:
        raise ValidationError(f"Estado de transferencia desconocido: {status!r}.", field="status")

    items = _clean_items(pick(data, "products", "items"))

    with atomic():
        _check_source_stock(items, source_id)

        transfer = Transfer(
            source_warehouse_id=source_id,
            target_warehouse_id=target_id,
            items=items,
            status=status,
            notes=str(data.get("notes") or "").strip() or None,
            user_id=pick(data, "userId", "user_id"),
        )
        db.session.add(transfer)
        db.session.flush()

        if status == "completed":
            _move_stock(transfer, "transfer")
            transfer.completed_at = utcnow()

    logger.info("Transfer %s created (%s -> %s, status=%s)", transfer.id, source_id, target_id, status)
    return transfer.id


def update_transfer_status(transfer_id, new_status: str, notes: Optional[str] = None) -> dict:
    """
    pending → completed moves the stock; pending → cancelled only records the
    cancellation. Asking for the current status changes nothing.
    """
    if new_status not in TRANSFER_STATUSES:
        raise ValidationError(f"Estado de transferencia desconocido: {new_status!r}.", field="status")

    transfer = _get_transfer_or_404(transfer_id)
    if transfer.status == new_status:
        return transfer_to_domain(transfer)
    if transfer.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"La transferencia ya está {transfer.status}; no admite cambios.",
            current=transfer.status,
            requested=new_status,
        )
    if new_status == "pending":
        raise InvalidTransitionError("Una transferencia no puede volver a pendiente.",
                                     current=transfer.status, requested=new_status)

    notes = str(notes).strip() if notes is not None else ""
    with atomic():
        if notes:
            transfer.notes = notes

        if new_status == "completed":
            _check_source_stock(transfer.items or [], transfer.source_warehouse_id)
            _move_stock(transfer, "transfer_completed")
            transfer.completed_at = utcnow()
        else:
            for item in transfer.items or []:
                product_id = int(item["productId"])
                current = ledger.sum_cells(product_id)
                ledger.add_history_entry({
                    "product_id": product_id,
                    "type": "transfer_cancelled",
                    "previous_quantity": current,
                    "new_quantity": current,
                    "quantity": float(item["quantity"]),
                    "source_warehouse_id": transfer.source_warehouse_id,
                    "target_warehouse_id": transfer.target_warehouse_id,
                    "transfer_id": transfer.id,
                    "user_id": transfer.user_id,
                    "notes": transfer.notes or f"Transferencia #{transfer.id} cancelada",
                })

        transfer.status = new_status

    logger.info("Transfer %s -> %s", transfer.id, new_status)
    return transfer_to_domain(transfer)
