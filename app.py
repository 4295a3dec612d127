import sys, os
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

import logging

from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError

from config import Config
from extensions import db
from modules.errors import StockError
from register_blueprints import register_blueprints


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.config.get("SECRET_KEY"):
        app.config["SECRET_KEY"] = "dev-change-me"

    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)
    logging.getLogger("modules").setLevel(level)

    os.makedirs(app.instance_path, exist_ok=True)

    db.init_app(app)

    from modules.realtime import notifier
    notifier.init_app(app)

    from modules.storage.blobs import BlobStore
    BlobStore(app.config["UPLOAD_FOLDER"]).ensure_buckets()

    register_blueprints(app)

    # Models (relationships resolve by name)
    from modules.fields.models import Field
    from modules.warehouses.models import Warehouse
    from modules.stock.models import Product, WarehouseStock, StockHistory
    from modules.transfers.models import Transfer
    from modules.purchases.models import Purchase, PurchaseHistory
    from modules.fumigations.models import Fumigation, FumigationProduct
    from modules.users.models import User

    with app.app_context():
        db.create_all()

    @app.route('/')
    def index():
        return jsonify({
            "name": "agro-stock",
            "resources": [
                "/productos", "/almacenes", "/transferencias", "/compras",
                "/fumigaciones", "/campos", "/usuarios", "/dashboard", "/reportes",
            ],
        })

    # ── business-rule errors raised by the services
    def _stock_error_handler(e: StockError):
        db.session.rollback()
        if e.status_code >= 500:
            app.logger.error(f"{type(e).__name__}: {e.message}")
        else:
            app.logger.info(f"{type(e).__name__}: {e.message}")
        return jsonify(e.as_dict()), e.status_code

    # ── single IntegrityError handler
    def _integrity_error_handler(e):
        db.session.rollback()
        msg = str(getattr(e, "orig", e))
        app.logger.warning(f"IntegrityError caught: {msg}")

        if "UNIQUE constraint failed" in msg or "duplicate key" in msg:
            text = "Ya existe un registro con esos datos."
        elif "FOREIGN KEY constraint failed" in msg or "foreign key" in msg:
            text = "Operación imposible: el registro se usa en otros datos."
        else:
            text = "Violación de integridad de datos. Revise unicidad y relaciones."
        return jsonify({"error": "integrity", "message": text}), 409

    app.register_error_handler(StockError, _stock_error_handler)
    app.register_error_handler(IntegrityError, _integrity_error_handler)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5001, debug=True)
