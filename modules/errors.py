# -*- coding: utf-8 -*-
"""
Domain error taxonomy shared by every business area.

Services raise these; ``app.create_app`` turns them into JSON responses with
the status code carried by the class.
"""

from __future__ import annotations


class StockError(Exception):
    """Base class for every business-rule failure."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict:
        payload = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(StockError):
    """Referenced entity is absent."""

    status_code = 404
    kind = "not_found"


class ValidationError(StockError):
    """Missing required field, non-numeric quantity, empty line-item list."""

    status_code = 400
    kind = "validation"


class InsufficientStockError(StockError):
    """Requested quantity exceeds what the warehouse holds at check time."""

    status_code = 409
    kind = "insufficient_stock"


class OverReceiptError(StockError):
    """Purchase receipt exceeds the pending quantity of a line."""

    status_code = 409
    kind = "over_receipt"


class InvalidTransitionError(StockError):
    """Status change not permitted from the current state."""

    status_code = 409
    kind = "invalid_transition"
