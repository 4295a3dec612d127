# -*- coding: utf-8 -*-
"""
Warehouses that hold agro-input stock (central depots, field sheds, distributors).
"""

from __future__ import annotations

from extensions import db
from modules.common import utcnow

WAREHOUSE_TYPES = ("central", "field", "distributor", "other")
WAREHOUSE_STATUSES = ("active", "inactive")


class Warehouse(db.Model):
    __tablename__ = "warehouses"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    location = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(32), nullable=False, default="central")

    # Optional association with a field (sheds on a farm)
    field_id = db.Column(db.Integer, db.ForeignKey("fields.id"), nullable=True, index=True)

    storage_condition = db.Column(db.String(100), nullable=True)
    capacity = db.Column(db.Float, nullable=True)
    capacity_unit = db.Column(db.String(32), nullable=True)
    supervisor = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    field = db.relationship("Field", backref=db.backref("warehouses", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r}>"
