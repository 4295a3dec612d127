"""Fields and the lots embedded in them."""

import pytest

from modules.errors import NotFoundError, ValidationError
from modules.fields import services


@pytest.fixture
def field_id(app):
    return services.create_field({"name": "La Carolina", "area": "350,5", "owner": "Familia Ríos"})


def test_create_field(field_id):
    field = services.get_field(field_id)

    assert field["area"] == 350.5
    assert field["areaUnit"] == "ha"
    assert field["lots"] == []


def test_field_requires_a_name(app):
    with pytest.raises(ValidationError):
        services.create_field({"name": "  "})


def test_lot_lifecycle(field_id):
    lot = services.add_lot(field_id, {"name": "Lote 1", "area": 40, "crop": "Soja"})

    assert lot["id"] and lot["createdAt"]
    assert services.get_lot(field_id, lot["id"])["crop"] == "Soja"

    updated = services.update_lot(field_id, lot["id"], {"area": "45", "id": "hijacked"})
    assert updated["id"] == lot["id"]
    assert updated["area"] == 45.0
    assert "updatedAt" in updated
    assert services.get_field(field_id)["lots"][0]["area"] == 45.0

    assert services.remove_lot(field_id, lot["id"]) is True
    assert services.get_field(field_id)["lots"] == []
    with pytest.raises(NotFoundError):
        services.get_lot(field_id, lot["id"])


def test_lots_keep_their_order(field_id):
    names = ["Norte", "Sur", "Bajo"]
    for name in names:
        services.add_lot(field_id, {"name": name})

    assert [lot["name"] for lot in services.get_field(field_id)["lots"]] == names


def test_lot_validation(field_id):
    with pytest.raises(ValidationError):
        services.add_lot(field_id, {"area": 10})
    lot = services.add_lot(field_id, {"name": "Lote 2"})
    with pytest.raises(ValidationError):
        services.update_lot(field_id, lot["id"], {"name": ""})
    with pytest.raises(NotFoundError):
        services.update_lot(field_id, "missing", {"name": "x"})
    with pytest.raises(NotFoundError):
        services.add_lot(999, {"name": "Lote"})


def test_delete_refused_while_a_warehouse_points_at_it(field_id, make_warehouse):
    make_warehouse("Galpón", fieldId=field_id)

    with pytest.raises(ValidationError):
        services.delete_field(field_id)


def test_delete_field(field_id):
    assert services.delete_field(field_id) is True
    with pytest.raises(NotFoundError):
        services.get_field(field_id)
