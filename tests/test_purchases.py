"""Purchases: creation totals and partial / over receipts."""

from __future__ import annotations

import pytest

from modules.errors import NotFoundError, OverReceiptError, ValidationError
from modules.purchases import services
from modules.purchases.models import Purchase, PurchaseHistory
from modules.stock.models import Product


@pytest.fixture
def warehouse(make_warehouse):
    return make_warehouse("Depósito central")


def _purchase(lines, **extra):
    data = {"supplier": "Agroinsumos SA", "invoice": "A-0001-123", "products": lines, **extra}
    return services.create_purchase(data)


def test_create_purchase_totals_and_history(make_product):
    p, q = make_product(), make_product()

    pid = _purchase(
        [{"productId": p, "quantity": 100, "unitPrice": 2.5}, {"productId": q, "quantity": 10, "unitPrice": "3,5"}],
        shippingCost=40,
    )

    purchase = services.get_purchase(pid)
    assert purchase["totalCost"] == pytest.approx(100 * 2.5 + 10 * 3.5 + 40)
    assert purchase["status"] == "pending"
    assert all(line["received"] == 0 and line["status"] == "pending" for line in purchase["products"])

    history = services.get_purchase_history(pid)
    assert [h["type"] for h in history] == ["create"]
    assert history[0]["details"]["invoice"] == "A-0001-123"


@pytest.mark.parametrize(
    "lines, extra",
    [
        ([], {}),
        ([{"productId": 1, "quantity": 1, "unitPrice": 1}], {"invoice": ""}),
        ([{"productId": 1, "quantity": 0, "unitPrice": 1}], {}),
        ([{"productId": 1, "quantity": 1, "unitPrice": -1}], {}),
        ([{"productId": 1, "quantity": 1}, {"productId": 1, "quantity": 2}], {}),
    ],
)
def test_create_purchase_validation(app, lines, extra):
    with pytest.raises(ValidationError):
        _purchase(lines, **extra)
    assert Purchase.query.count() == 0


def test_partial_then_complete_receipt(warehouse, make_product, stock_of, history_rows):
    p = make_product(stock={warehouse: 5})
    pid = _purchase([{"productId": p, "quantity": 100, "unitPrice": 1}])

    first = services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 40}])

    assert first["products"][0]["received"] == 40
    assert first["products"][0]["status"] == "partial"
    assert first["status"] == "partial"
    assert first["completedAt"] is None
    assert stock_of(p) == {warehouse: 45}

    second = services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 60}])

    assert second["products"][0]["received"] == 100
    assert second["products"][0]["status"] == "completed"
    assert second["status"] == "completed"
    assert second["completedAt"] is not None
    assert stock_of(p) == {warehouse: 105}

    receipts = history_rows(product_id=p, type="purchase_receive")
    assert [r["quantity"] for r in receipts] == [60, 40]
    assert all(r["purchaseId"] == pid for r in receipts)
    assert [h["type"] for h in services.get_purchase_history(pid)] == ["create", "receive", "receive"]


def test_over_receipt_is_rejected_without_side_effects(warehouse, make_product, stock_of, history_rows):
    p = make_product(stock={warehouse: 0})
    pid = _purchase([{"productId": p, "quantity": 100, "unitPrice": 1}])
    services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 90}])
    receipts_before = len(history_rows(type="purchase_receive"))

    with pytest.raises(OverReceiptError):
        services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 20}])

    line = services.get_purchase(pid)["products"][0]
    assert line["received"] == 90
    assert stock_of(p) == {warehouse: 90}
    assert len(history_rows(type="purchase_receive")) == receipts_before
    assert PurchaseHistory.query.filter_by(purchase_id=pid, type="receive").count() == 1


def test_rejected_batch_applies_no_line(warehouse, make_product, stock_of):
    p, q = make_product(), make_product()
    pid = _purchase([
        {"productId": p, "quantity": 10, "unitPrice": 1},
        {"productId": q, "quantity": 5, "unitPrice": 1},
    ])

    with pytest.raises(OverReceiptError):
        services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 10}, {"productId": q, "quantity": 6}])

    assert stock_of(p) == {}
    assert services.get_purchase(pid)["status"] == "pending"


def test_receiving_a_product_not_in_the_purchase(warehouse, make_product):
    p, other = make_product(), make_product()
    pid = _purchase([{"productId": p, "quantity": 10, "unitPrice": 1}])

    with pytest.raises(NotFoundError):
        services.receive_purchase(pid, warehouse, [{"productId": other, "quantity": 1}])


def test_unknown_catalogue_product_is_auto_created(db, warehouse, stock_of):
    pid = _purchase([{
        "productId": 501,
        "name": "Cletodim 24%",
        "category": "herbicida",
        "unitOfMeasure": "Lts",
        "quantity": 20,
        "unitPrice": 12,
    }])

    services.receive_purchase(pid, warehouse, [{"productId": 501, "quantity": 20}])

    product = db.session.get(Product, 501)
    assert product is not None
    assert (product.name, product.category, product.unit_of_measure, product.min_stock) == (
        "Cletodim 24%", "herbicida", "Lts", 0
    )
    assert product.quantity == 20
    assert stock_of(501) == {warehouse: 20}


def test_auto_created_product_defaults(db, warehouse):
    pid = _purchase([{"productId": 777, "quantity": 1, "unitPrice": 1}])

    services.receive_purchase(pid, warehouse, [{"productId": 777, "quantity": 1}])

    product = db.session.get(Product, 777)
    assert (product.name, product.category, product.unit_of_measure) == ("Producto sin nombre", "Sin categoría", "unidad")


def test_completed_purchase_cannot_be_received_again(warehouse, make_product, stock_of):
    p = make_product()
    pid = _purchase([{"productId": p, "quantity": 1, "unitPrice": 1}])
    services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 1}])

    with pytest.raises(OverReceiptError):
        services.receive_purchase(pid, warehouse, [{"productId": p, "quantity": 1}])

    assert stock_of(p) == {warehouse: 1}
    assert services.get_purchase(pid)["status"] == "completed"


def test_receive_requires_warehouse_and_lines(warehouse, make_product):
    p = make_product()
    pid = _purchase([{"productId": p, "quantity": 1, "unitPrice": 1}])

    with pytest.raises(ValidationError):
        services.receive_purchase(pid, None, [{"productId": p, "quantity": 1}])
    with pytest.raises(ValidationError):
        services.receive_purchase(pid, warehouse, [])
    with pytest.raises(NotFoundError):
        services.receive_purchase(pid, 999, [{"productId": p, "quantity": 1}])


def test_list_by_status(warehouse, make_product):
    p = make_product()
    done = _purchase([{"productId": p, "quantity": 1, "unitPrice": 1}])
    _purchase([{"productId": p, "quantity": 5, "unitPrice": 1}], invoice="B-2")
    services.receive_purchase(done, warehouse, [{"productId": p, "quantity": 1}])

    assert [x["id"] for x in services.get_all_purchases(status="completed")] == [done]
    assert len(services.get_all_purchases()) == 2


def test_unknown_status_filter(app):
    with pytest.raises(ValidationError):
        services.get_all_purchases(status="lost")
