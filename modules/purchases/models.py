from extensions import db
from modules.common import utcnow

PURCHASE_STATUSES = ("pending", "partial", "completed")


class Purchase(db.Model):
    """
    Supplier purchase with ordered-vs-received tracking per line.
    items_json format: [{"productId": 1, "name": "...", "category": "...", "unitOfMeasure": "Lts",
                         "quantity": 100.0, "unitPrice": 2.5, "received": 40.0, "status": "partial"}, ...]
    """
    __tablename__ = "purchases"

    id = db.Column(db.Integer, primary_key=True)
    supplier = db.Column(db.String(255), nullable=True)
    invoice = db.Column(db.String(128), nullable=False, index=True)

    items = db.Column("items_json", db.JSON, nullable=False, default=list)

    shipping_cost = db.Column(db.Float, nullable=False, default=0.0)
    total_cost = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    history = db.relationship(
        "PurchaseHistory",
        backref="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseHistory.id",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} invoice={self.invoice!r} status={self.status}>"


class PurchaseHistory(db.Model):
    """Purchase log, separate from stock history: one row per create / receive batch."""
    __tablename__ = "purchase_history"

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)  # create | receive
    warehouse_id = db.Column(db.Integer, nullable=True)
    products = db.Column(db.JSON, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    status = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "purchaseId": self.purchase_id,
            "type": self.type,
            "warehouseId": self.warehouse_id,
            "products": self.products,
            "details": self.details,
            "status": self.status,
            "notes": self.notes or "",
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self) -> str:
        return f"<PurchaseHistory id={self.id} purchase_id={self.purchase_id} type={self.type}>"
