from flask import Blueprint, jsonify

from extensions import db
from modules.common import formdata_from, request_payload, validate_form
from modules.errors import NotFoundError
from . import services
from .forms import FieldForm, LotForm
from .models import Field

fields_bp = Blueprint('fields', __name__, url_prefix='/campos')


def _form_row(payload: dict) -> dict:
    row = dict(payload)
    if 'areaUnit' in row:
        row['area_unit'] = row.pop('areaUnit')
    return row


@fields_bp.get('/')
def index():
    return jsonify(services.get_all_fields())


@fields_bp.post('/')
def create():
    payload = request_payload()
    validate_form(FieldForm(formdata=formdata_from(_form_row(payload)), meta={'csrf': False}))
    field_id = services.create_field(payload)
    return jsonify(services.get_field(field_id)), 201


@fields_bp.get('/<int:field_id>')
def detail(field_id):
    return jsonify(services.get_field(field_id))


@fields_bp.route('/<int:field_id>', methods=['PUT', 'PATCH'])
def update(field_id):
    field = db.session.get(Field, field_id)
    if field is None:
        raise NotFoundError(f"El campo {field_id} no existe.", field_id=field_id)
    payload = request_payload()
    validate_form(FieldForm(formdata=formdata_from(_form_row(payload)), obj=field, meta={'csrf': False}))
    return jsonify(services.update_field(field_id, payload))


@fields_bp.delete('/<int:field_id>')
def delete(field_id):
    services.delete_field(field_id)
    return jsonify({'deleted': True, 'id': field_id})


# ── Lotes ─────────────────────────────────────────────────────────────

@fields_bp.post('/<int:field_id>/lotes')
def add_lot(field_id):
    payload = request_payload()
    validate_form(LotForm(formdata=formdata_from(payload), meta={'csrf': False}))
    return jsonify(services.add_lot(field_id, payload)), 201


@fields_bp.get('/<int:field_id>/lotes/<lot_id>')
def get_lot(field_id, lot_id):
    return jsonify(services.get_lot(field_id, lot_id))


@fields_bp.route('/<int:field_id>/lotes/<lot_id>', methods=['PUT', 'PATCH'])
def update_lot(field_id, lot_id):
    return jsonify(services.update_lot(field_id, lot_id, request_payload()))


@fields_bp.delete('/<int:field_id>/lotes/<lot_id>')
def remove_lot(field_id, lot_id):
    services.remove_lot(field_id, lot_id)
    return jsonify({'deleted': True, 'id': lot_id})
