# app/services/export.py
"""
Exportación de reportes a CSV y PDF

Funciones puras sobre la lista ya cargada: no consultan la base de datos ni
guardan nada en el servidor.
"""
import csv
from datetime import datetime
from io import BytesIO, StringIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle

from app.utils.format_utils import (
    format_coordinate,
    format_datetime,
    format_long_date,
    to_colombia,
    truncate_description,
)

CSV_HEADERS = ['ID', 'Descripción', 'Latitud', 'Longitud', 'Foto', 'Fecha']
PDF_HEADERS = ['#', 'Descripción', 'Latitud', 'Longitud', 'Foto', 'Fecha']
PDF_TITLE = 'EcoMed — Reporte de acumulaciones de basura'
PDF_DESCRIPTION_LIMIT = 60

PAGE_SIZE = landscape(A4)


def export_filename(extension, now=None):
    """ecomed_reportes_YYYY-MM-DD.<ext>"""
    now = now or datetime.utcnow()
    return f"ecomed_reportes_{to_colombia(now).strftime('%Y-%m-%d')}.{extension}"


# ---------- CSV ----------

def build_csv(reports) -> str:
    """
    CSV con la descripción siempre entre comillas (comillas internas duplicadas)
    y las coordenadas con precisión completa
    """
    output = StringIO()

    # Cabecera sin comillas
    csv.writer(output, lineterminator='\n').writerow(CSV_HEADERS)

    # QUOTE_NONNUMERIC: textos entre comillas, floats tal cual
    writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n')
    for r in reports:
        writer.writerow([
            str(r.id),
            r.description,
            float(r.lat),
            float(r.lng),
            r.photo_url or '',
            format_datetime(r.created_at),
        ])

    return output.getvalue()


# ---------- PDF ----------

class NumberedCanvas(canvas.Canvas):
    """Canvas que dibuja "Página i de N" al guardar, cuando ya se conoce N"""

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        num_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(num_pages)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_footer(self, page_count):
        self.setFont('Helvetica', 7)
        self.setFillColorRGB(180 / 255, 180 / 255, 180 / 255)
        text = f"Página {self._pageNumber} de {page_count}  ·  EcoMed"
        self.drawCentredString(self._pagesize[0] / 2.0, 5 * mm, text)


def pdf_rows(reports):
    """Filas de la tabla del PDF (sin cabecera)"""
    rows = []
    for i, r in enumerate(reports, start=1):
        rows.append([
            str(i),
            truncate_description(r.description, PDF_DESCRIPTION_LIMIT),
            format_coordinate(r.lat),
            format_coordinate(r.lng),
            'Sí' if r.photo_url else '—',
            format_datetime(r.created_at, short=True),
        ])
    return rows


def _draw_header(report_count, generated_at):
    def draw(canv, doc):
        width, height = PAGE_SIZE
        canv.saveState()
        if canv.getPageNumber() == 1:
            canv.setFillColorRGB(30 / 255, 30 / 255, 30 / 255)
            canv.rect(0, height - 30 * mm, width, 30 * mm, stroke=0, fill=1)

            canv.setFont('Helvetica-Bold', 16)
            canv.setFillColor(colors.white)
            canv.drawString(14 * mm, height - 13 * mm, PDF_TITLE)

            canv.setFont('Helvetica', 9)
            canv.setFillColorRGB(180 / 255, 180 / 255, 180 / 255)
            canv.drawString(
                14 * mm, height - 22 * mm,
                f"Generado el {format_long_date(generated_at)}  ·  {report_count} reportes"
            )
        canv.restoreState()
    return draw


def build_pdf(reports, now=None) -> bytes:
    """Tabla paginada de reportes con pie "Página i de N" en cada hoja"""
    now = now or datetime.utcnow()
    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=PAGE_SIZE,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=35 * mm,
        bottomMargin=14 * mm,
        title=PDF_TITLE,
        author='EcoMed',
    )

    table = Table(
        [PDF_HEADERS] + pdf_rows(reports),
        colWidths=[10 * mm, 100 * mm, 25 * mm, 25 * mm, 15 * mm, 40 * mm],
        repeatRows=1,
    )
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#323232')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('TEXTCOLOR', (0, 1), (-1, -1), colors.HexColor('#323232')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f8f8f8')]),
        ('ALIGN', (0, 0), (0, -1), 'CENTER'),
        ('ALIGN', (2, 0), (4, -1), 'CENTER'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
    ]))

    header = _draw_header(len(reports), now)
    doc.build([table], onFirstPage=header, onLaterPages=header, canvasmaker=NumberedCanvas)

    return buffer.getvalue()
