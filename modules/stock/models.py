# -*- coding: utf-8 -*-
"""
Product catalogue, per-warehouse stock cells and the append-only movement history.
"""

from __future__ import annotations

from extensions import db
from modules.common import utcnow

HISTORY_TYPES = (
    "create",
    "update",
    "delete",
    "transfer",
    "transfer_completed",
    "transfer_cancelled",
    "purchase_receive",
    "fumigation",
)


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=True, index=True)

    # Cached sum of the stock cells, maintained by the ledger
    quantity = db.Column(db.Float, nullable=False, default=0.0)
    min_stock = db.Column(db.Float, nullable=False, default=0.0)

    unit_of_measure = db.Column(db.String(50), nullable=False, default="unidad")
    lot_number = db.Column(db.String(100), nullable=True)
    expiry_date = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    stock = db.relationship(
        "WarehouseStock",
        backref="product",
        cascade="all, delete-orphan",
        order_by="WarehouseStock.warehouse_id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"


class WarehouseStock(db.Model):
    """One (product, warehouse) stock cell."""

    __tablename__ = "warehouse_stock"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False, default=0.0)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_warehouse_stock_product_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_warehouse_stock_non_negative"),
    )

    warehouse = db.relationship("Warehouse", backref=db.backref("stock", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<WarehouseStock product={self.product_id} warehouse={self.warehouse_id} qty={self.quantity}>"


class StockHistory(db.Model):
    """
    Audit row, written once per mutating operation and never updated.
    product_id is not a foreign key: entries outlive deleted products.
    """

    __tablename__ = "stock_history"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, index=True)

    # Product-level totals, not the cell
    previous_quantity = db.Column(db.Float, nullable=False, default=0.0)
    new_quantity = db.Column(db.Float, nullable=False, default=0.0)
    quantity = db.Column(db.Float, nullable=True)  # moved amount, when meaningful

    warehouse_id = db.Column(db.Integer, nullable=True, index=True)
    source_warehouse_id = db.Column(db.Integer, nullable=True)
    target_warehouse_id = db.Column(db.Integer, nullable=True)

    transfer_id = db.Column(db.Integer, nullable=True, index=True)
    purchase_id = db.Column(db.Integer, nullable=True, index=True)
    fumigation_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<StockHistory id={self.id} product={self.product_id} type={self.type}>"
