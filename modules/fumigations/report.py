# -*- coding: utf-8 -*-
"""
"Orden de aplicación" PDF for a fumigation.

``render_fumigation_report`` is a pure data → bytes function; the lookups
(product and warehouse names, image bytes) happen in ``build_report_data``
and ``generate_fumigation_report``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from extensions import db
from modules.errors import NotFoundError
from modules.storage.blobs import FUMIGATION_IMAGES, REPORTS, get_blob_store
from .models import Fumigation

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "pending": "Pendiente",
    "in_progress": "En curso",
    "completed": "Completada",
    "cancelled": "Cancelada",
}


# ───────────────────────────── Helpers ─────────────────────────────

def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else "Sin fecha"


def _fmt_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y %H:%M") if value else ""


def _fmt_number(value) -> str:
    if value is None:
        return ""
    return f"{float(value):.2f}".rstrip("0").rstrip(".")


def _font_name(font_path: Optional[str]) -> str:
    """DejaVu when the TTF is available (accents, Ñ, °), Helvetica otherwise."""
    if font_path and os.path.isfile(font_path):
        if "DejaVu" not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont("DejaVu", font_path))
        return "DejaVu"
    return "Helvetica"


def _grid(data, font: str, col_widths=None, align: str = "LEFT") -> Table:
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.Color(240 / 255, 240 / 255, 240 / 255)),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("ALIGN", (0, 0), (-1, -1), align),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    return table


# ───────────────────────────── Data ─────────────────────────────

def build_report_data(fumigation: Fumigation) -> dict:
    """Flat, already-formatted view of the order used by the renderer."""
    products = []
    for line in fumigation.products:
        products.append({
            "product_name": line.product.name if line.product else "Producto desconocido",
            "warehouse_name": line.warehouse.name if line.warehouse else "Almacén desconocido",
            "dose_per_ha": line.dose_per_ha,
            "dose_unit": line.dose_unit,
            "total_quantity": line.total_quantity,
            "total_unit": line.total_unit,
        })
    return {
        "order_number": fumigation.order_number,
        "date": _fmt_date(fumigation.date),
        "establishment": fumigation.establishment,
        "applicator": fumigation.applicator,
        "field_name": fumigation.field.name if fumigation.field else "",
        "crop": fumigation.crop,
        "lot": fumigation.lot,
        "surface": fumigation.surface,
        "products": products,
        "start_datetime": _fmt_datetime(fumigation.start_datetime),
        "end_datetime": _fmt_datetime(fumigation.end_datetime),
        "observations": fumigation.observations or "",
        "status": STATUS_LABELS.get(fumigation.status, fumigation.status),
        "generated_at": datetime.now().strftime("%d/%m/%Y"),
    }


# ───────────────────────────── Renderer ─────────────────────────────

def render_fumigation_report(data: dict, image_bytes: Optional[bytes] = None, font_path: Optional[str] = None) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=f"Orden de aplicación N° {data.get('order_number')}",
    )
    font = _font_name(font_path)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Title"], fontName=font, fontSize=16, spaceAfter=4)
    normal = ParagraphStyle("ReportNormal", parent=styles["Normal"], fontName=font, fontSize=9)
    label = ParagraphStyle("ReportLabel", parent=normal, fontSize=10, spaceBefore=6, spaceAfter=4)

    elements = [
        Paragraph("ORDEN DE APLICACIÓN", title_style),
        Paragraph(f"N° {data.get('order_number')}", title_style),
        Spacer(1, 8),
    ]

    elements.append(_grid(
        [["FECHA:", "ESTABLECIMIENTO:", "APLICADOR:"],
         [data.get("date") or "", data.get("establishment") or "", data.get("applicator") or ""]],
        font,
        col_widths=[40 * mm, 80 * mm, 60 * mm],
    ))
    elements.append(Spacer(1, 10))

    rows = [["CULTIVO", "LOTE", "SUPERFICIE", "PRODUCTO", "DOSIS / HA", "TOTAL PRODUCTO"]]
    for product in data.get("products") or []:
        rows.append([
            data.get("crop") or "",
            data.get("lot") or "",
            f"{_fmt_number(data.get('surface'))} ha",
            Paragraph(escape(product.get("product_name") or ""), normal),
            f"{_fmt_number(product.get('dose_per_ha'))} {product.get('dose_unit') or ''}",
            f"{_fmt_number(product.get('total_quantity'))} {product.get('total_unit') or ''}",
        ])
    elements.append(_grid(rows, font, col_widths=[25 * mm, 25 * mm, 25 * mm, 50 * mm, 27 * mm, 28 * mm]))
    elements.append(Spacer(1, 10))

    elements.append(_grid(
        [["FECHA Y HORA DE INICIO", "FECHA Y HORA DE FIN"],
         [data.get("start_datetime") or "", data.get("end_datetime") or ""]],
        font,
        col_widths=[90 * mm, 90 * mm],
        align="CENTER",
    ))
    elements.append(Spacer(1, 10))

    elements.append(Paragraph("OBSERVACIONES:", label))
    elements.append(Paragraph(escape(data.get("observations") or "").replace("\n", "<br/>") or "-", normal))

    if image_bytes:
        try:
            img = Image(BytesIO(image_bytes))
            img._restrictSize(170 * mm, 100 * mm)
            elements.append(Spacer(1, 10))
            elements.append(img)
        except Exception:
            logger.exception("Fumigation image could not be embedded in report %s", data.get("order_number"))

    elements.append(Spacer(1, 12))
    elements.append(Paragraph(
        f"Estado: {data.get('status') or ''} · Generado el {data.get('generated_at') or ''}", normal
    ))

    doc.build(elements)
    return buffer.getvalue()


# ───────────────────────────── Entry points ─────────────────────────────

def generate_fumigation_report(fumigation_id) -> tuple[bytes, str]:
    """Returns (pdf bytes, file name)."""
    fumigation = db.session.get(Fumigation, fumigation_id)
    if fumigation is None:
        raise NotFoundError(f"La fumigación {fumigation_id} no existe.", fumigation_id=fumigation_id)

    image_bytes = None
    if fumigation.image_path:
        try:
            image_bytes = get_blob_store().download(FUMIGATION_IMAGES, fumigation.image_path)
        except Exception:
            logger.warning("Image %s for fumigation %s is missing; report without it",
                           fumigation.image_path, fumigation.id)

    pdf = render_fumigation_report(
        build_report_data(fumigation),
        image_bytes=image_bytes,
        font_path=current_app.config.get("REPORT_FONT_PATH"),
    )
    return pdf, f"Fumigacion_{fumigation.order_number or fumigation.id}.pdf"


def export_fumigation_report(fumigation_id) -> str:
    """Stores the PDF in the reports bucket and returns its path there."""
    pdf, filename = generate_fumigation_report(fumigation_id)
    return get_blob_store().upload(REPORTS, filename, pdf)
