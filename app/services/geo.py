# app/services/geo.py
"""
Tipos geográficos compartidos: coordenada y rectángulo de servicio
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    @classmethod
    def from_dict(cls, data):
        if not data:
            return None
        return cls(lat=float(data['lat']), lng=float(data['lng']))

    def to_dict(self):
        return {'lat': self.lat, 'lng': self.lng}


@dataclass(frozen=True)
class Bounds:
    west: float
    south: float
    east: float
    north: float

    @property
    def width(self):
        return self.east - self.west

    @property
    def height(self):
        return self.north - self.south

    def contains(self, coord: Coordinate) -> bool:
        return self.south <= coord.lat <= self.north and self.west <= coord.lng <= self.east

    def clamp(self, coord: Coordinate) -> Coordinate:
        return Coordinate(
            lat=min(max(coord.lat, self.south), self.north),
            lng=min(max(coord.lng, self.west), self.east),
        )

    def to_lnglat_pairs(self):
        """Formato [[oeste, sur], [este, norte]] que espera el widget del mapa"""
        return [[self.west, self.south], [self.east, self.north]]


# Rectángulo aproximado del área metropolitana de Medellín
MEDELLIN_BOUNDS = Bounds(west=-75.85, south=5.95, east=-75.25, north=6.55)
