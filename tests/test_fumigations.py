"""Fumigation orders: quantities, lifecycle, stock consumption, images and reports."""

from __future__ import annotations

from io import BytesIO

import pytest
from werkzeug.datastructures import FileStorage

from extensions import db
from modules.errors import InsufficientStockError, InvalidTransitionError, NotFoundError, ValidationError
from modules.fumigations import report, services
from modules.fumigations.models import Fumigation
from modules.storage.blobs import FUMIGATION_IMAGES, REPORTS, BlobStore, get_blob_store


def _order(product_id, warehouse_id, **extra):
    line = {"productId": product_id, "warehouseId": warehouse_id, "dosePerHa": 500, "doseUnit": "cc/ha"}
    line.update(extra.pop("line", {}))
    data = {
        "establishment": "La Esperanza",
        "applicator": "Aplicaciones del Sur",
        "crop": "Soja",
        "lot": "Lote 4",
        "surface": 10,
        "products": [line],
        **extra,
    }
    return services.create_fumigation(data)


def _png_bytes() -> bytes:
    from PIL import Image

    buffer = BytesIO()
    Image.new("RGB", (8, 8), (40, 160, 60)).save(buffer, format="PNG")
    return buffer.getvalue()


def _upload(data: bytes = b"evidence", filename: str = "foto.jpg") -> FileStorage:
    return FileStorage(stream=BytesIO(data), filename=filename)


@pytest.fixture
def depot(make_warehouse):
    return make_warehouse("Galpón de agroquímicos")


# ───────────────────────────── Quantities ─────────────────────────────

@pytest.mark.parametrize(
    "surface, dose, unit, expected",
    [
        (10, 500, "cc/ha", (5.0, "Lts")),
        (25, 80, "g/ha", (2.0, "Kg")),
        (3, 150, "ml/ha", (450.0, "ml/ha")),
        (12.5, 2, "l/ha", (25.0, "l/ha")),
        (4, 1.5, "kg/ha", (6.0, "kg/ha")),
        (7, 1, "u/ha", (7.0, "u/ha")),
        (3, 333, "cc/ha", (1.0, "Lts")),
    ],
)
def test_compute_total_quantity(surface, dose, unit, expected):
    assert services.compute_total_quantity(surface, dose, unit) == expected


def test_other_dose_units_pass_through():
    assert services.compute_total_quantity(10, 2, "Lts/ha") == (20.0, "Lts/ha")
    assert services.compute_total_quantity(10, 2, " oz/ha ") == (20.0, "oz/ha")
    assert services.compute_total_quantity(10, 500, None) == (5.0, "Lts")


def test_order_line_keeps_unconverted_unit(depot, make_product):
    fid = _order(make_product(), depot, line={"dosePerHa": 150, "doseUnit": "ml/ha"})

    line = services.get_fumigation(fid)["products"][0]
    assert (line["doseUnit"], line["totalQuantity"], line["totalUnit"]) == ("ml/ha", 1500.0, "ml/ha")


def test_recompute_keeps_units_unless_reconverting():
    lines = [{"dosePerHa": 500, "doseUnit": "cc/ha", "totalQuantity": 5, "totalUnit": "Lts"}]

    plain = services.recompute_totals(lines, 20)
    converted = services.recompute_totals(lines, 20, reconvert=True)

    assert (plain[0]["totalQuantity"], plain[0]["totalUnit"]) == (10000.0, "Lts")
    assert (converted[0]["totalQuantity"], converted[0]["totalUnit"]) == (10.0, "Lts")
    assert lines[0]["totalQuantity"] == 5


def test_line_total_is_computed_or_taken_from_payload(depot, make_product):
    p = make_product()

    computed = services.get_fumigation(_order(p, depot))["products"][0]
    supplied = services.get_fumigation(_order(p, depot, line={"totalQuantity": 4.2, "totalUnit": "Lts"}))["products"][0]

    assert (computed["totalQuantity"], computed["totalUnit"]) == (5.0, "Lts")
    assert (supplied["totalQuantity"], supplied["totalUnit"]) == (4.2, "Lts")


# ───────────────────────────── Creation ─────────────────────────────

def test_order_numbers_follow_the_highest(depot, make_product):
    p = make_product()
    ids = [_order(p, depot) for _ in range(3)]
    assert [services.get_fumigation(i)["orderNumber"] for i in ids] == [1, 2, 3]

    assert services.next_order_number() == 4
    fourth = _order(p, depot)
    assert services.get_fumigation(fourth)["orderNumber"] == 4


def test_new_orders_are_always_pending(depot, make_product):
    fid = _order(make_product(), depot, status="completed")
    assert services.get_fumigation(fid)["status"] == "pending"


@pytest.mark.parametrize(
    "override",
    [
        {"establishment": ""},
        {"surface": 0},
        {"surface": "mucho"},
        {"products": []},
        {"line": {"dosePerHa": None}},
        {"line": {"warehouseId": None}},
    ],
)
def test_invalid_orders_are_rejected(depot, make_product, override):
    with pytest.raises(ValidationError):
        _order(make_product(), depot, **override)
    assert services.get_all_fumigations() == []


def test_unknown_references(depot, make_product):
    p = make_product()
    with pytest.raises(NotFoundError):
        _order(999, depot)
    with pytest.raises(NotFoundError):
        _order(p, depot, fieldId=999)


# ───────────────────────────── Lifecycle ─────────────────────────────

def test_completion_deducts_with_floor_clamp(depot, make_product, stock_of, history_rows):
    p = make_product(stock={depot: 2})
    fid = _order(p, depot, line={"totalQuantity": 5})

    services.update_fumigation_status(fid, "in_progress")
    done = services.update_fumigation_status(fid, "completed", {"observations": "Viento calmo"})

    assert stock_of(p) == {depot: 0}
    assert done["status"] == "completed"
    assert done["observations"] == "Viento calmo"
    assert done["startDatetime"] is not None and done["endDatetime"] is not None

    (entry,) = history_rows(product_id=p, type="fumigation")
    assert (entry["previousQuantity"], entry["newQuantity"]) == (2, 0)
    assert entry["quantity"] == 5
    assert entry["fumigationId"] == fid
    assert entry["notes"] == "Producto utilizado en fumigación #1"


def test_stock_is_not_touched_before_completion(depot, make_product, stock_of, history_rows):
    p = make_product(stock={depot: 10})
    fid = _order(p, depot)

    services.update_fumigation_status(fid, "in_progress")
    services.update_fumigation_status(fid, "cancelled")

    assert stock_of(p) == {depot: 10}
    assert history_rows(type="fumigation") == []


@pytest.mark.parametrize(
    "path, target",
    [
        (["in_progress", "completed"], "in_progress"),
        (["cancelled"], "in_progress"),
        ([], "completed"),
        ([], "pending"),
        (["in_progress"], "pending"),
    ],
)
def test_disallowed_transitions(depot, make_product, path, target):
    fid = _order(make_product(stock={depot: 100}), depot)
    for status in path:
        services.update_fumigation_status(fid, status)

    with pytest.raises(InvalidTransitionError):
        services.update_fumigation_status(fid, target)


def test_unknown_status(depot, make_product):
    fid = _order(make_product(), depot)
    with pytest.raises(ValidationError):
        services.update_fumigation_status(fid, "paused")


def test_stock_guard_flag(app, depot, make_product, stock_of):
    app.config["STOCK_GUARD_FUMIGATION"] = True
    p = make_product(stock={depot: 2})
    fid = _order(p, depot, line={"totalQuantity": 5})
    services.update_fumigation_status(fid, "in_progress")

    with pytest.raises(InsufficientStockError):
        services.update_fumigation_status(fid, "completed")

    assert stock_of(p) == {depot: 2}
    assert services.get_fumigation(fid)["status"] == "in_progress"


# ───────────────────────────── Editing ─────────────────────────────

def test_surface_change_recomputes_lines(depot, make_product):
    fid = _order(make_product(), depot)

    updated = services.update_fumigation(fid, {"surface": 20})

    assert updated["surface"] == 20
    assert updated["products"][0]["totalQuantity"] == 10000.0
    assert updated["products"][0]["totalUnit"] == "Lts"


def test_surface_change_reconverts_when_enabled(app, depot, make_product):
    app.config["FUMIGATION_RECONVERT_ON_RECOMPUTE"] = True
    fid = _order(make_product(), depot)

    updated = services.update_fumigation(fid, {"surface": 20})

    assert updated["products"][0]["totalQuantity"] == 10.0


def test_products_payload_replaces_lines(depot, make_product):
    p, q = make_product(), make_product()
    fid = _order(p, depot)

    updated = services.update_fumigation(fid, {"products": [
        {"productId": q, "warehouseId": depot, "dosePerHa": 2, "doseUnit": "l/ha"},
    ]})

    assert [(line["productId"], line["totalQuantity"]) for line in updated["products"]] == [(q, 20.0)]


def test_closed_orders_cannot_be_edited(depot, make_product):
    fid = _order(make_product(stock={depot: 100}), depot)
    services.update_fumigation_status(fid, "cancelled")

    with pytest.raises(InvalidTransitionError):
        services.update_fumigation(fid, {"lot": "Lote 9"})


def test_filters(depot, make_product):
    p = make_product()
    first = _order(p, depot, crop="Maíz", lot="Bajo")
    _order(p, depot, applicator="Fumigaciones Pampa")

    assert [f["id"] for f in services.get_all_fumigations(crop="Maíz")] == [first]
    assert len(services.get_all_fumigations(search_term="pampa")) == 1
    assert len(services.get_all_fumigations(status="pending")) == 2


def test_delete_keeps_consumed_stock(depot, make_product, stock_of):
    p = make_product(stock={depot: 10})
    fid = _order(p, depot)
    services.update_fumigation_status(fid, "in_progress")
    services.update_fumigation_status(fid, "completed")

    services.delete_fumigation(fid)

    assert stock_of(p) == {depot: 5}
    with pytest.raises(NotFoundError):
        services.get_fumigation(fid)


# ───────────────────────────── Images ─────────────────────────────

def test_image_is_stored_and_replaced(depot, make_product):
    fid = _order(make_product(), depot)

    services.update_fumigation(fid, {}, image=_upload(b"first"))
    first_path = services.get_fumigation(fid)["imagePath"]
    assert services.get_fumigation_image(fid) == b"first"

    services.update_fumigation(fid, {}, image=_upload(b"second", "foto.png"))
    second_path = services.get_fumigation(fid)["imagePath"]

    assert second_path != first_path and second_path.endswith(".png")
    assert services.get_fumigation_image(fid) == b"second"
    assert not get_blob_store().exists(FUMIGATION_IMAGES, first_path)


def test_image_failure_does_not_fail_the_save(depot, make_product, monkeypatch):
    def broken_upload(self, bucket, path, data):
        raise OSError("disk full")

    monkeypatch.setattr(BlobStore, "upload", broken_upload)

    fid = services.create_fumigation({
        "establishment": "La Esperanza",
        "applicator": "Aplicaciones del Sur",
        "crop": "Trigo",
        "lot": "Lote 1",
        "surface": 5,
        "products": [{"productId": make_product(), "warehouseId": depot, "dosePerHa": 1, "doseUnit": "l/ha"}],
    }, image=_upload())

    saved = services.get_fumigation(fid)
    assert saved["imagePath"] is None
    with pytest.raises(NotFoundError):
        services.get_fumigation_image(fid)


def test_delete_removes_image(depot, make_product):
    fid = _order(make_product(), depot)
    services.update_fumigation(fid, {}, image=_upload())
    path = services.get_fumigation(fid)["imagePath"]

    services.delete_fumigation(fid)

    assert not get_blob_store().exists(FUMIGATION_IMAGES, path)


# ───────────────────────────── Reports ─────────────────────────────

def test_pdf_report(depot, make_product):
    fid = _order(make_product("Glifosato 66%"), depot, observations="Aplicar temprano")

    pdf, filename = report.generate_fumigation_report(fid)

    assert pdf.startswith(b"%PDF")
    assert filename == "Fumigacion_1.pdf"


def test_pdf_report_embeds_image(depot, make_product):
    fid = _order(make_product(), depot)
    services.update_fumigation(fid, {}, image=_upload(_png_bytes(), "foto.png"))

    with_image, _ = report.generate_fumigation_report(fid)

    assert with_image.startswith(b"%PDF")
    assert b"/Image" in with_image


def test_report_data(depot, make_product):
    fid = _order(make_product("Atrazina"), depot, date="2024-03-05")

    data = report.build_report_data(db.session.get(Fumigation, fid))

    assert data["date"] == "05/03/2024"
    assert data["products"][0]["product_name"] == "Atrazina"
    assert data["status"] == report.STATUS_LABELS["pending"]


def test_export_to_reports_bucket(depot, make_product):
    fid = _order(make_product(), depot)

    path = report.export_fumigation_report(fid)

    assert path == "Fumigacion_1.pdf"
    assert get_blob_store().download(REPORTS, path).startswith(b"%PDF")


def test_report_for_missing_order(app):
    with pytest.raises(NotFoundError):
        report.generate_fumigation_report(42)
