# -*- coding: utf-8 -*-
"""
Application users and their per-screen permission maps.
Login/session handling is not part of this module; it only stores the
credentials hash and answers permission questions.
"""

from __future__ import annotations

import logging

from extensions import db
from modules.common import atomic, utcnow
from modules.errors import NotFoundError, ValidationError
from modules.stock.mapper import user_to_domain
from .models import DEFAULT_PERMISSIONS, PERMISSIONS, USER_ROLES, User

logger = logging.getLogger(__name__)


def _get_user_or_404(user_id) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"El usuario {user_id} no existe.", user_id=user_id)
    return user


def _clean_role(role) -> str:
    role = role or "user"
    if role not in USER_ROLES:
        raise ValidationError(f"Rol desconocido: {role!r}.", field="role")
    return role


def _clean_permissions(permissions) -> dict:
    if not isinstance(permissions, dict):
        raise ValidationError("Los permisos deben ser un objeto {permiso: bool}.", field="permissions")
    unknown = sorted(str(k) for k in permissions if k not in PERMISSIONS)
    if unknown:
        raise ValidationError(f"Permisos desconocidos: {', '.join(unknown)}.", field="permissions")
    return {str(k): bool(v) for k, v in permissions.items()}


# ───────────────────────────── Queries ─────────────────────────────

def get_all_users() -> list[dict]:
    return [user_to_domain(u) for u in User.query.order_by(User.email.asc()).all()]


def get_user(user_id) -> dict:
    return user_to_domain(_get_user_or_404(user_id))


def has_permission(user, permission: str) -> bool:
    """Admins (by role or by the ``admin`` flag) have every permission."""
    if user is None:
        return False
    if isinstance(user, dict):
        permissions = user.get("permissions") or {}
        if user.get("role") == "admin" or permissions.get("admin"):
            return True
        return bool(permissions.get(permission))
    if user.is_admin:
        return True
    return bool((user.permissions or {}).get(permission))


# ───────────────────────────── Mutations ─────────────────────────────

def create_user(data: dict) -> int:
    email = str(data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("El correo y la contraseña son obligatorios.")
    if "@" not in email:
        raise ValidationError("Correo electrónico inválido.", field="email")
    if User.query.filter(User.email == email).first() is not None:
        raise ValidationError(f"Ya existe un usuario con el correo {email}.", field="email")

    permissions = data.get("permissions")
    with atomic():
        user = User(
            email=email,
            display_name=(data.get("displayName") or data.get("display_name") or email.split("@")[0]).strip(),
            role=_clean_role(data.get("role")),
            permissions=_clean_permissions(permissions) if permissions is not None else dict(DEFAULT_PERMISSIONS),
        )
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

    logger.info("User %s created (%s, role=%s)", user.id, email, user.role)
    return user.id


def update_user(user_id, data: dict) -> dict:
    """Profile fields only; email and password are not changed here."""
    user = _get_user_or_404(user_id)
    with atomic():
        if "displayName" in data or "display_name" in data:
            user.display_name = (data.get("displayName", data.get("display_name")) or "").strip() or None
        if "role" in data:
            user.role = _clean_role(data.get("role"))
        if "permissions" in data:
            user.permissions = _clean_permissions(data.get("permissions"))
    return user_to_domain(user)


def update_user_permissions(user_id, permissions: dict) -> dict:
    user = _get_user_or_404(user_id)
    with atomic():
        user.permissions = _clean_permissions(permissions)
    return user_to_domain(user)


def check_password(email: str, password: str) -> bool:
    """Verifies credentials; a successful check stamps last_login."""
    user = User.query.filter(User.email == (email or "").strip().lower()).first()
    if user is None or not user.check_password(password):
        return False
    with atomic():
        user.last_login = utcnow()
    return True
