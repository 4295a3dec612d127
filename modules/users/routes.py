from flask import Blueprint, jsonify

from modules.common import request_payload
from modules.errors import ValidationError
from . import services

users_bp = Blueprint("users", __name__, url_prefix="/usuarios")


@users_bp.get("/")
def index():
    return jsonify(services.get_all_users())


@users_bp.post("/")
def create():
    user_id = services.create_user(request_payload())
    return jsonify(services.get_user(user_id)), 201


@users_bp.get("/<int:user_id>")
def detail(user_id):
    return jsonify(services.get_user(user_id))


@users_bp.route("/<int:user_id>", methods=["PUT", "PATCH"])
def update(user_id):
    return jsonify(services.update_user(user_id, request_payload()))


@users_bp.put("/<int:user_id>/permisos")
def permissions(user_id):
    payload = request_payload()
    if "permissions" not in payload:
        raise ValidationError("Indique los permisos.", field="permissions")
    return jsonify(services.update_user_permissions(user_id, payload["permissions"]))
