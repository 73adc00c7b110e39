"""
Filtros Jinja para coordenadas y fechas
"""
from app.utils.format_utils import format_coordinate, format_datetime


def register_filters(app):
    app.add_template_filter(format_coordinate, 'coord')
    app.add_template_filter(lambda d: format_datetime(d, short=True), 'fecha_corta')
    app.add_template_filter(format_datetime, 'fecha')
