# -*- coding: utf-8 -*-
"""
Fields (establishments) with their lots embedded as a JSON list.
Lots have no table of their own; every lot edit rewrites the whole list.
"""

from __future__ import annotations

from extensions import db
from modules.common import utcnow


class Field(db.Model):
    __tablename__ = "fields"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    area = db.Column(db.Float, nullable=True)
    area_unit = db.Column(db.String(16), nullable=False, default="ha")
    owner = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # [{"id": "<uuid>", "name": "...", "area": 12.5, "crop": "...", "createdAt": "..."}]
    lots = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Field id={self.id} name='{self.name}'>"
