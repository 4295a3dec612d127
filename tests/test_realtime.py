"""Change notifications fire after commit and never after rollback."""

import pytest

from modules.errors import InsufficientStockError
from modules.realtime import notifier
from modules.transfers import services as transfer_services


@pytest.fixture
def seen(app):
    tables = []
    for table in ("products", "warehouse_stock", "stock_history", "transfers", "warehouses"):
        notifier.subscribe(table, tables.append)
    return tables


def test_committed_writes_notify(seen, make_warehouse, make_product):
    wid = make_warehouse()
    assert seen == ["warehouses"]

    seen.clear()
    make_product(stock={wid: 3})
    assert set(seen) == {"products", "warehouse_stock", "stock_history"}


def test_rolled_back_writes_do_not_notify(seen, make_warehouse, make_product):
    a, b = make_warehouse(), make_warehouse()
    pid = make_product(stock={a: 1})
    seen.clear()

    with pytest.raises(InsufficientStockError):
        transfer_services.create_transfer({
            "sourceWarehouseId": a,
            "targetWarehouseId": b,
            "products": [{"productId": pid, "quantity": 5}],
        })

    assert seen == []


def test_unsubscribe(app, make_warehouse):
    calls = []
    unsubscribe = notifier.subscribe("warehouses", calls.append)
    unsubscribe()
    unsubscribe()

    make_warehouse()

    assert calls == []


def test_failing_subscriber_does_not_break_the_commit(app, make_warehouse):
    def explode(table):
        raise RuntimeError("listener down")

    notifier.subscribe("warehouses", explode)

    wid = make_warehouse()

    assert wid is not None
