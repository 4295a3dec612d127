"""Shared pytest fixtures for the stock ledger tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

# Make the flat project layout importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from config import TestConfig  # noqa: E402
from extensions import db as _db  # noqa: E402
from modules.realtime import notifier  # noqa: E402
from modules.stock import services as product_services  # noqa: E402
from modules.warehouses import services as warehouse_services  # noqa: E402


@pytest.fixture
def config_class(tmp_path: Path):
    """TestConfig with the blob store rooted in a temp folder."""

    return type("IsolatedTestConfig", (TestConfig,), {"UPLOAD_FOLDER": str(tmp_path / "storage")})


@pytest.fixture
def app(config_class):
    application = create_app(config_class)
    with application.app_context():
        yield application
        _db.session.remove()
        _db.drop_all()
    notifier.clear_subscribers()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_warehouse(app) -> Callable[..., int]:
    """Factory: creates a warehouse and returns its id."""

    counter = {"n": 0}

    def _make(name: str | None = None, **extra) -> int:
        counter["n"] += 1
        data = {"name": name or f"Almacén {counter['n']}", **extra}
        return warehouse_services.create_warehouse(data)

    return _make


@pytest.fixture
def make_product(app) -> Callable[..., int]:
    """Factory: creates a product with optional {warehouse_id: quantity} stock."""

    counter = {"n": 0}

    def _make(name: str | None = None, stock: dict | None = None, **extra) -> int:
        counter["n"] += 1
        data = {"name": name or f"Producto {counter['n']}", "warehouseStock": stock or {}, **extra}
        return product_services.create_product(data)

    return _make


@pytest.fixture
def stock_of(app) -> Callable[[int], dict]:
    """Current {warehouse_id: quantity} of a product, read fresh from the store."""

    def _read(product_id: int) -> dict:
        return product_services.get_product(product_id)["warehouseStock"]

    return _read


@pytest.fixture
def history_rows(app) -> Callable[..., list]:
    from modules.stock import ledger

    def _read(**filters) -> list:
        return ledger.get_stock_history(**filters)

    return _read

