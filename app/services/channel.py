# app/services/channel.py
from typing import Callable, Optional

from app.services.geo import Coordinate


class LocationChannel:
    """
    Canal de un solo consumidor para coordenadas resueltas por GPS

    El formulario de reporte publica; la superficie del mapa consume. Suscribir
    un nuevo consumidor reemplaza al anterior.
    """

    def __init__(self):
        self._consumer: Optional[Callable[[Coordinate], None]] = None

    def subscribe(self, consumer: Callable[[Coordinate], None]):
        self._consumer = consumer

    def unsubscribe(self):
        self._consumer = None

    @property
    def has_consumer(self):
        return self._consumer is not None

    def publish(self, coord: Coordinate) -> bool:
        """Entrega la coordenada; devuelve False si nadie escucha"""
        if not isinstance(coord, Coordinate):
            raise TypeError('LocationChannel solo transporta Coordinate')
        if self._consumer is None:
            return False
        self._consumer(coord)
        return True
