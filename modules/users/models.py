from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from modules.common import utcnow

USER_ROLES = ("admin", "manager", "user")

# Screens a permission map can grant
PERMISSIONS = (
    "dashboard",
    "products",
    "warehouses",
    "transfers",
    "purchases",
    "fumigations",
    "fields",
    "reports",
    "users",
    "admin",
)

DEFAULT_PERMISSIONS = {"dashboard": True}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    display_name = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="user")
    permissions = db.Column(db.JSON, nullable=False, default=lambda: dict(DEFAULT_PERMISSIONS))

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return bool(password) and check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin" or bool((self.permissions or {}).get("admin"))

    def __repr__(self):
        return f"<User id={self.id} email={self.email!r} role={self.role}>"
