from flask_wtf import FlaskForm
from wtforms import FloatField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional
from wtforms_sqlalchemy.fields import QuerySelectField

from modules.fields.models import Field
from .models import WAREHOUSE_STATUSES, WAREHOUSE_TYPES

TYPE_LABELS = {
    "central": "Central",
    "field": "De campo",
    "distributor": "Distribuidor",
    "other": "Otro",
}


class WarehouseForm(FlaskForm):
    name = StringField('Nombre', validators=[DataRequired(), Length(max=255)])
    location = StringField('Ubicación', validators=[Optional(), Length(max=255)])
    type = SelectField(
        'Tipo',
        choices=[(t, TYPE_LABELS[t]) for t in WAREHOUSE_TYPES],
        default='central'
    )
    field = QuerySelectField(
        'Campo',
        query_factory=lambda: Field.query.order_by(Field.name).all(),
        get_label='name',
        allow_blank=True
    )
    storage_condition = StringField('Condición de almacenamiento', validators=[Optional(), Length(max=100)])
    capacity = FloatField('Capacidad', validators=[Optional(), NumberRange(min=0)])
    capacity_unit = StringField('Unidad de capacidad', validators=[Optional(), Length(max=32)])
    supervisor = StringField('Responsable', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notas', validators=[Optional()])
    status = SelectField(
        'Estado',
        choices=[(s, 'Activo' if s == 'active' else 'Inactivo') for s in WAREHOUSE_STATUSES],
        default='active'
    )

    submit = SubmitField('Guardar')
