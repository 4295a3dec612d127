# reset_db.py

from app import create_app
from extensions import db

app = create_app()

with app.app_context():
    print("⚠️ Se eliminarán todas las tablas...")
    db.drop_all()
    print("🧹 Tablas eliminadas.")
    db.create_all()
    print("✅ Base de datos creada de nuevo.")
