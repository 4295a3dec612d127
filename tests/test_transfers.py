"""Transfers between warehouses."""

from __future__ import annotations

import pytest

from modules.common import atomic
from modules.errors import InsufficientStockError, InvalidTransitionError, NotFoundError, ValidationError
from modules.stock import ledger
from modules.transfers import services
from modules.transfers.models import Transfer


@pytest.fixture
def depots(make_warehouse):
    return make_warehouse("Central"), make_warehouse("Galpón norte")


def _transfer(source, target, items, **extra):
    return services.create_transfer({
        "sourceWarehouseId": source,
        "targetWarehouseId": target,
        "products": items,
        **extra,
    })


def test_pending_then_completed_moves_stock(depots, make_product, stock_of, history_rows):
    a, b = depots
    p = make_product(stock={a: 10, b: 0})

    tid = _transfer(a, b, [{"productId": p, "quantity": 4}])
    assert stock_of(p) == {a: 10, b: 0}

    result = services.update_transfer_status(tid, "completed")

    assert result["status"] == "completed"
    assert result["completedAt"] is not None
    assert stock_of(p) == {a: 6, b: 4}
    assert services.get_transfer(tid)["status"] == "completed"

    moved = history_rows(product_id=p, type="transfer_completed")
    assert len(moved) == 2
    assert {r["warehouseId"] for r in moved} == {a, b}
    assert all(r["transferId"] == tid for r in moved)
    assert all((r["sourceWarehouseId"], r["targetWarehouseId"]) == (a, b) for r in moved)
    # a pure move leaves the aggregate where it was
    assert moved[0]["newQuantity"] == 10
    assert services.get_transfer(tid)["products"] == [{"productId": p, "quantity": 4.0}]


def test_insufficient_stock_at_creation_writes_nothing(depots, make_product, stock_of):
    a, b = depots
    p = make_product(name="Atrazina", stock={a: 3})

    with pytest.raises(InsufficientStockError) as exc:
        _transfer(a, b, [{"productId": p, "quantity": 5}])

    assert "Atrazina" in exc.value.message
    assert stock_of(p) == {a: 3}
    assert Transfer.query.count() == 0


def test_sufficiency_counts_repeated_lines_together(depots, make_product):
    a, b = depots
    p = make_product(stock={a: 5})

    with pytest.raises(InsufficientStockError):
        _transfer(a, b, [{"productId": p, "quantity": 3}, {"productId": p, "quantity": 3}])


def test_completion_rechecks_stock(depots, make_product, stock_of):
    a, b = depots
    p = make_product(stock={a: 10})
    tid = _transfer(a, b, [{"productId": p, "quantity": 8}])

    with atomic():
        ledger.apply_delta(p, a, -5, {"type": "fumigation"})

    with pytest.raises(InsufficientStockError):
        services.update_transfer_status(tid, "completed")

    assert services.get_transfer(tid)["status"] == "pending"
    assert stock_of(p) == {a: 5}


def test_create_completed_moves_inline(depots, make_product, stock_of, history_rows):
    a, b = depots
    p = make_product(stock={a: 10})

    tid = _transfer(a, b, [{"productId": p, "quantity": 2.5}], status="completed")

    assert stock_of(p) == {a: 7.5, b: 2.5}
    assert services.get_transfer(tid)["completedAt"] is not None
    assert len(history_rows(product_id=p, type="transfer")) == 2


def test_same_status_is_a_no_op(depots, make_product, stock_of, history_rows):
    a, b = depots
    p = make_product(stock={a: 10})
    tid = _transfer(a, b, [{"productId": p, "quantity": 4}])
    before = len(history_rows(product_id=p))

    services.update_transfer_status(tid, "pending")

    assert len(history_rows(product_id=p)) == before
    assert stock_of(p) == {a: 10}

    services.update_transfer_status(tid, "completed")
    after_completion = len(history_rows(product_id=p))
    services.update_transfer_status(tid, "completed")

    assert len(history_rows(product_id=p)) == after_completion
    assert stock_of(p) == {a: 6, b: 4}


@pytest.mark.parametrize("terminal", ["completed", "cancelled"])
def test_terminal_states_refuse_changes(depots, make_product, terminal):
    a, b = depots
    p = make_product(stock={a: 10})
    tid = _transfer(a, b, [{"productId": p, "quantity": 1}])
    services.update_transfer_status(tid, terminal)

    other = "cancelled" if terminal == "completed" else "completed"
    with pytest.raises(InvalidTransitionError):
        services.update_transfer_status(tid, other)
    with pytest.raises(InvalidTransitionError):
        services.update_transfer_status(tid, "pending")

    assert services.get_transfer(tid)["status"] == terminal


def test_cancel_records_history_without_moving_stock(depots, make_product, stock_of, history_rows):
    a, b = depots
    p = make_product(stock={a: 10})
    q = make_product(stock={a: 3, b: 1})
    tid = _transfer(a, b, [{"productId": p, "quantity": 4}, {"productId": q, "quantity": 1}])

    services.update_transfer_status(tid, "cancelled", notes="Camión sin lugar")

    assert stock_of(p) == {a: 10}
    assert stock_of(q) == {a: 3, b: 1}
    cancelled = history_rows(type="transfer_cancelled")
    assert {r["productId"] for r in cancelled} == {p, q}
    assert all(r["previousQuantity"] == r["newQuantity"] for r in cancelled)
    assert all(r["notes"] == "Camión sin lugar" for r in cancelled)


def test_status_notes_are_coerced_to_text(depots, make_product):
    a, b = depots
    p = make_product(stock={a: 10})
    tid = _transfer(a, b, [{"productId": p, "quantity": 1}], notes=42)
    assert services.get_transfer(tid)["notes"] == "42"

    result = services.update_transfer_status(tid, "cancelled", notes=123)

    assert result["status"] == "cancelled"
    assert services.get_transfer(tid)["notes"] == "123"


def test_unknown_status_is_rejected(depots, make_product):
    a, b = depots
    p = make_product(stock={a: 10})
    tid = _transfer(a, b, [{"productId": p, "quantity": 1}])

    with pytest.raises(ValidationError):
        services.update_transfer_status(tid, "shipped")


@pytest.mark.parametrize(
    "payload",
    [
        {"targetWarehouseId": 2, "products": [{"productId": 1, "quantity": 1}]},
        {"sourceWarehouseId": 1, "products": [{"productId": 1, "quantity": 1}]},
        {"sourceWarehouseId": 1, "targetWarehouseId": 2, "products": []},
        {"sourceWarehouseId": 1, "targetWarehouseId": 2, "products": [{"productId": 1, "quantity": 0}]},
        {"sourceWarehouseId": 1, "targetWarehouseId": 2, "products": [{"productId": 1, "quantity": "x"}]},
        {"sourceWarehouseId": 1, "targetWarehouseId": 1, "products": [{"productId": 1, "quantity": 1}]},
    ],
)
def test_validation_before_writes(depots, make_product, payload):
    a, b = depots
    make_product(stock={a: 10})
    assert (a, b) == (1, 2)

    with pytest.raises(ValidationError):
        services.create_transfer(payload)
    assert Transfer.query.count() == 0


def test_unknown_transfer(app):
    with pytest.raises(NotFoundError):
        services.update_transfer_status(123, "completed")


def test_list_filters_by_status(depots, make_product):
    a, b = depots
    p = make_product(stock={a: 10})
    first = _transfer(a, b, [{"productId": p, "quantity": 1}])
    _transfer(a, b, [{"productId": p, "quantity": 1}])
    services.update_transfer_status(first, "cancelled")

    assert [t["id"] for t in services.get_all_transfers(status="cancelled")] == [first]
    assert len(services.get_all_transfers()) == 2
