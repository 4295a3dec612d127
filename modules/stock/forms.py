from flask_wtf import FlaskForm
from wtforms import FloatField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional


class ProductForm(FlaskForm):
    name = StringField('Nombre', validators=[DataRequired(), Length(max=255)])
    category = StringField('Categoría', validators=[Optional(), Length(max=100)])
    min_stock = FloatField('Stock mínimo', validators=[Optional(), NumberRange(min=0)])
    unit_of_measure = StringField('Unidad de medida', default='unidad', validators=[Optional(), Length(max=50)])
    lot_number = StringField('Número de lote', validators=[Optional(), Length(max=100)])
    notes = TextAreaField('Notas', validators=[Optional()])

    submit = SubmitField('Guardar')
