# app/services/geolocation.py
"""
Adaptador de geolocalización

Envuelve una fuente de posición de un solo disparo (el navegador, en la
práctica) y traduce sus fallos a la taxonomía de errores de la aplicación.
No reintenta: quien llama decide el plan B (selección manual en el mapa).
"""
import logging
import time
from typing import Optional

from app.services.errors import (
    GeolocationPermissionDenied,
    GeolocationTimeout,
    GeolocationUnavailable,
)
from app.services.geo import Coordinate

logger = logging.getLogger(__name__)

# Códigos de GeolocationPositionError (W3C)
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

DEFAULT_TIMEOUT_MS = 10000
FIRST_LOAD_TIMEOUT_MS = 8000


class PositionError(Exception):
    """Fallo reportado por la fuente de posición, con código W3C"""

    def __init__(self, code, message=''):
        self.code = code
        super().__init__(message or f'position error {code}')


class BrowserPositionSource:
    """
    Resultado de `navigator.geolocation.getCurrentPosition` enviado por el navegador

    Payload esperado (JSON):
        {"lat": 6.25, "lng": -75.57, "elapsed_ms": 1200}
        {"error": {"code": 1, "message": "User denied"}, "elapsed_ms": 300}
        {"unsupported": true}
    """

    def __init__(self, payload):
        self.payload = payload or {}

    @property
    def supported(self):
        return not self.payload.get('unsupported', False)

    def __call__(self, high_accuracy: bool, timeout_ms: int) -> Coordinate:
        error = self.payload.get('error')
        if error:
            code = error.get('code') if isinstance(error, dict) else error
            message = error.get('message', '') if isinstance(error, dict) else ''
            raise PositionError(int(code), message)

        elapsed_ms = self.payload.get('elapsed_ms')
        if elapsed_ms is not None and float(elapsed_ms) > timeout_ms:
            raise PositionError(TIMEOUT, 'posición recibida fuera de plazo')

        try:
            return Coordinate(lat=float(self.payload['lat']), lng=float(self.payload['lng']))
        except (KeyError, TypeError, ValueError):
            raise PositionError(POSITION_UNAVAILABLE, 'posición incompleta')


class GeolocationAdapter:
    """Pide una posición una sola vez, con tiempo límite"""

    def __init__(self, source=None, clock=time.monotonic):
        self.source = source
        self.clock = clock

    def acquire(self, high_accuracy: bool = True, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Coordinate:
        """
        Obtener la coordenada actual

        Args:
            high_accuracy: pedir GPS de alta precisión
            timeout_ms: tiempo máximo de espera en milisegundos

        Returns:
            Coordinate

        Raises:
            GeolocationUnavailable: no hay capacidad de posicionamiento
            GeolocationPermissionDenied: el usuario negó el permiso
            GeolocationTimeout: la posición no llegó a tiempo
        """
        if self.source is None or not getattr(self.source, 'supported', True):
            raise GeolocationUnavailable()

        started = self.clock()
        try:
            coord = self.source(high_accuracy, timeout_ms)
        except PositionError as e:
            logger.info(f"Geolocalización falló (código {e.code}): {e}")
            raise _map_position_error(e.code) from e

        elapsed_ms = (self.clock() - started) * 1000
        if elapsed_ms > timeout_ms:
            raise GeolocationTimeout()

        return coord


def _map_position_error(code: Optional[int]):
    if code == PERMISSION_DENIED:
        return GeolocationPermissionDenied()
    if code == TIMEOUT:
        return GeolocationTimeout()
    return GeolocationUnavailable()
