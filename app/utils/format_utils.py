"""
Utilidades de formato para tablas y exportaciones (convención es-CO)
"""
from datetime import datetime
from typing import Optional

import pytz

COLOMBIA_TZ = pytz.timezone('America/Bogota')

MESES = [
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio',
    'julio', 'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
]

ELLIPSIS = '…'


def to_colombia(date: datetime) -> datetime:
    """Convertir un datetime (naive = UTC) a la hora de Colombia"""
    if date.tzinfo is None:
        date = pytz.UTC.localize(date)
    return date.astimezone(COLOMBIA_TZ)


def _hora_12(date: datetime, with_seconds: bool) -> str:
    hour = date.hour % 12 or 12
    suffix = 'a. m.' if date.hour < 12 else 'p. m.'
    if with_seconds:
        return f"{hour}:{date.minute:02d}:{date.second:02d} {suffix}"
    return f"{hour}:{date.minute:02d} {suffix}"


def format_datetime(date: Optional[datetime], short: bool = False) -> str:
    """
    Formatear fecha y hora como en Colombia

    Args:
        date: fecha (naive se asume UTC)
        short: formato corto (ej: 19/10/26, 3:45 p. m.)

    Returns:
        String formateado (ej: 19/10/2026, 3:45:12 p. m.)
    """
    if not date:
        return ''
    local = to_colombia(date)
    if short:
        return f"{local.strftime('%d/%m/%y')}, {_hora_12(local, with_seconds=False)}"
    return f"{local.strftime('%d/%m/%Y')}, {_hora_12(local, with_seconds=True)}"


def format_long_date(date: datetime) -> str:
    """Ej: 19 de octubre de 2026"""
    local = to_colombia(date)
    return f"{local.day} de {MESES[local.month - 1]} de {local.year}"


def format_coordinate(value: float) -> str:
    """Coordenada con 5 decimales (~1 m)"""
    return f"{value:.5f}"


def truncate_description(text: str, limit: int = 60) -> str:
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text
