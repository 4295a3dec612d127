# -*- coding: utf-8 -*-
"""
Small helpers shared by the services: one transaction per logical operation,
tolerant number parsing, UTC timestamps.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone

from flask import request
from werkzeug.datastructures import MultiDict

from extensions import db
from modules.errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC "now" (the columns store naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@contextmanager
def atomic():
    """
    Commit everything the block wrote, or nothing.
    Any exception rolls the session back and propagates unchanged.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def to_float(value, field: str, *, minimum: float | None = None, positive: bool = False) -> float:
    """Parses numbers from JSON/form input ("1,5" is accepted as 1.5)."""
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(f"El campo '{field}' debe ser numérico.", field=field)
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"El campo '{field}' debe ser numérico.", field=field) from None
    if number != number:  # NaN
        raise ValidationError(f"El campo '{field}' debe ser numérico.", field=field)
    if positive and number <= 0:
        raise ValidationError(f"El campo '{field}' debe ser mayor que cero.", field=field)
    if minimum is not None and number < minimum:
        raise ValidationError(f"El campo '{field}' no puede ser menor que {minimum:g}.", field=field)
    return number


def to_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"El campo '{field}' debe ser un identificador.", field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"El campo '{field}' debe ser un identificador.", field=field) from None


def pick(data: dict, *keys, default=None):
    """First present key wins; camelCase and snake_case payloads both work."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# ───────────────────────────── Request helpers ─────────────────────────────

def request_payload() -> dict:
    """JSON body, or the posted form as a plain dict."""
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("El cuerpo de la petición debe ser un objeto JSON.")
        return data
    return request.form.to_dict()


def formdata_from(row: dict) -> MultiDict:
    """
    WTForms reads strings; JSON brings ints, floats and nulls.
    Nested values (lists, dicts) are not form fields and are skipped.
    """
    out = MultiDict()
    for key, value in row.items():
        if isinstance(value, (list, dict)):
            continue
        if isinstance(value, bool):
            out[key] = "y" if value else ""
        else:
            out[key] = "" if value is None else str(value)
    return out


def validate_form(form) -> None:
    """Raises ValidationError with the first field error of a WTForms form."""
    if form.validate():
        return
    for name, errors in form.errors.items():
        if errors:
            raise ValidationError(f"{getattr(form, name).label.text}: {errors[0]}", field=name)
    raise ValidationError("Datos de formulario inválidos.")


def date_arg(name: str):
    """Optional ISO date/datetime query-string argument."""
    from modules.stock.mapper import from_timestamp

    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return from_timestamp(raw)
    except ValueError:
        raise ValidationError(f"Fecha inválida en '{name}': {raw!r}.", field=name) from None
