# -*- coding: utf-8 -*-
from __future__ import annotations

from extensions import db
from modules.common import utcnow

TRANSFER_STATUSES = ("pending", "completed", "cancelled")
TERMINAL_STATUSES = ("completed", "cancelled")


class Transfer(db.Model):
    """
    Movement of products between two warehouses.
    items_json format: [{"productId": 1, "quantity": 4.0}, ...]
    """

    __tablename__ = "transfers"

    id = db.Column(db.Integer, primary_key=True)
    source_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    target_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    items = db.Column("items_json", db.JSON, nullable=False, default=list)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    source_warehouse = db.relationship("Warehouse", foreign_keys=[source_warehouse_id])
    target_warehouse = db.relationship("Warehouse", foreign_keys=[target_warehouse_id])

    def __repr__(self) -> str:
        return f"<Transfer id={self.id} {self.source_warehouse_id}->{self.target_warehouse_id} status={self.status}>"
