from flask_wtf import FlaskForm
from wtforms import FloatField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional


class FieldForm(FlaskForm):
    name = StringField('Nombre', validators=[DataRequired(), Length(max=255)])
    location = StringField('Ubicación', validators=[Optional(), Length(max=255)])
    area = FloatField('Superficie', validators=[Optional(), NumberRange(min=0)])
    area_unit = StringField('Unidad de superficie', default='ha', validators=[Optional(), Length(max=16)])
    owner = StringField('Propietario', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notas', validators=[Optional()])

    submit = SubmitField('Guardar')


class LotForm(FlaskForm):
    name = StringField('Nombre del lote', validators=[DataRequired(), Length(max=128)])
    area = FloatField('Superficie', validators=[Optional(), NumberRange(min=0)])
    crop = StringField('Cultivo', validators=[Optional(), Length(max=64)])

    submit = SubmitField('Guardar')
