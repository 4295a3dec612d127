import os
import sys

# --- project root on sys.path for the imports below ---
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from app import create_app
from modules.common import atomic
from modules.stock.ledger import recompute_all_quantities


def main():
    app = create_app()
    with app.app_context():
        with atomic():
            drifted = recompute_all_quantities()
        for product_id, stored, actual in drifted:
            print(f"Producto {product_id}: {stored:g} -> {actual:g}")
        print(f"Listo. Productos corregidos: {len(drifted) or 'ninguno'}")


if __name__ == "__main__":
    main()
