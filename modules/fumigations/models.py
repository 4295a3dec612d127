# -*- coding: utf-8 -*-
from __future__ import annotations

from extensions import db
from modules.common import utcnow

FUMIGATION_STATUSES = ("pending", "in_progress", "completed", "cancelled")

# status → statuses it may move to
TRANSITIONS = {
    "pending": ("in_progress", "cancelled"),
    "in_progress": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}

EDITABLE_STATUSES = ("pending", "in_progress")


class Fumigation(db.Model):
    """Application work order: what gets sprayed, where, and how much product it consumes."""

    __tablename__ = "fumigations"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.Integer, nullable=False, unique=True, index=True)
    date = db.Column(db.DateTime, nullable=True)

    establishment = db.Column(db.String(255), nullable=False)
    applicator = db.Column(db.String(255), nullable=False)
    field_id = db.Column(db.Integer, db.ForeignKey("fields.id"), nullable=True, index=True)
    crop = db.Column(db.String(64), nullable=False)
    lot = db.Column(db.String(128), nullable=False)
    surface = db.Column(db.Float, nullable=False)

    observations = db.Column(db.Text, nullable=True)
    image_path = db.Column(db.String(512), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    start_datetime = db.Column(db.DateTime, nullable=True)
    end_datetime = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    field = db.relationship("Field")
    products = db.relationship(
        "FumigationProduct",
        backref="fumigation",
        cascade="all, delete-orphan",
        order_by="FumigationProduct.id",
    )

    def __repr__(self) -> str:
        return f"<Fumigation id={self.id} order={self.order_number} status={self.status}>"


class FumigationProduct(db.Model):
    __tablename__ = "fumigation_products"

    id = db.Column(db.Integer, primary_key=True)
    fumigation_id = db.Column(db.Integer, db.ForeignKey("fumigations.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    dose_per_ha = db.Column(db.Float, nullable=False)
    dose_unit = db.Column(db.String(16), nullable=False, default="cc/ha")
    total_quantity = db.Column(db.Float, nullable=False)
    total_unit = db.Column(db.String(16), nullable=False, default="Lts")

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")

    def __repr__(self) -> str:
        return (
            f"<FumigationProduct fumigation={self.fumigation_id} product={self.product_id} "
            f"total={self.total_quantity} {self.total_unit}>"
        )
