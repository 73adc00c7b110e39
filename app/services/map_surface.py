# app/services/map_surface.py
"""
Superficie de interacción del mapa

Mantiene la cámara (longitud, latitud, zoom) limitada al rectángulo de
Medellín, el modo selección y los marcadores. El dibujo de teselas queda en
el widget de Mapbox del navegador; aquí solo vive el estado y la proyección
pantalla -> coordenada que usa un toque.

La proyección es Web Mercator sobre teselas de 512 px, igual que el widget:
la longitud es lineal en píxeles, la latitud no.
"""
import math
from dataclasses import dataclass
from typing import Callable, Optional

from app.services.geo import MEDELLIN_BOUNDS, Bounds, Coordinate

TILE_SIZE = 512
MIN_ZOOM = 11
MAX_ZOOM = 22
DEFAULT_VIEWPORT = (1280, 800)

GPS_ZOOM = 16
MY_POSITION_ZOOM = 14

MAP_STYLES = {
    'dark': 'mapbox://styles/mapbox/dark-v11',
    'standard': 'mapbox://styles/mapbox/standard',
    'satellite': 'mapbox://styles/mapbox/satellite-streets-v12',
}

NEXT_STYLE = {
    'dark': 'standard',
    'standard': 'satellite',
    'satellite': 'dark',
}

STYLE_LABELS = {
    'dark': '🌙 Oscuro',
    'standard': '🗺️ Estándar',
    'satellite': '🛰️ Satélite',
}

OVERLAYS = ('menu', 'acerca', 'privacidad')

# Tabla fija de interpolación por zoom: a poco zoom puntos más densos y pequeños
HEATMAP_LAYER = {
    'id': 'heatmap',
    'type': 'heatmap',
    'paint': {
        'heatmap-weight': ['interpolate', ['linear'], ['zoom'], 0, 0.3, 12, 1],
        'heatmap-intensity': ['interpolate', ['linear'], ['zoom'], 0, 0.2, 12, 0.8],
        'heatmap-radius': ['interpolate', ['linear'], ['zoom'], 0, 10, 12, 25],
        'heatmap-color': [
            'interpolate', ['linear'], ['heatmap-density'],
            0, 'rgba(0,0,0,0)',
            0.1, '#2563eb',
            0.3, '#06b6d4',
            0.5, '#22c55e',
            0.7, '#eab308',
            0.9, '#f97316',
            1.0, '#ef4444',
        ],
        'heatmap-opacity': 0.85,
    },
}


def interpolate_linear(stops, x):
    """Interpolación lineal con extremos fijos, como la expresión 'interpolate' de Mapbox"""
    if x <= stops[0][0]:
        return stops[0][1]
    for (x0, y0), (x1, y1) in zip(stops, stops[1:]):
        if x <= x1:
            return y0 + (y1 - y0) * (x - x0) / (x1 - x0)
    return stops[-1][1]


def heatmap_value(prop, zoom):
    """Evaluar una propiedad de la capa de calor ('heatmap-radius', ...) para un zoom"""
    expression = HEATMAP_LAYER['paint'][prop]
    flat = expression[3:]
    stops = list(zip(flat[0::2], flat[1::2]))
    return interpolate_linear(stops, zoom)


@dataclass
class Camera:
    longitude: float
    latitude: float
    zoom: float

    def to_dict(self):
        return {'longitude': self.longitude, 'latitude': self.latitude, 'zoom': self.zoom}

    @classmethod
    def from_dict(cls, data):
        return cls(float(data['longitude']), float(data['latitude']), float(data['zoom']))


DEFAULT_CAMERA = Camera(longitude=-75.567, latitude=6.247, zoom=12)


def world_size(zoom):
    """Ancho del mundo en píxeles para un zoom"""
    return TILE_SIZE * 2 ** zoom


def mercator_y(latitude):
    """Latitud -> fracción vertical del mundo (0 arriba, 1 abajo)"""
    phi = math.radians(latitude)
    return (1 - math.log(math.tan(math.pi / 4 + phi / 2)) / math.pi) / 2


def latitude_from_mercator(y):
    return math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y))))


def feature_collection(reports):
    return {
        'type': 'FeatureCollection',
        'features': [r.to_feature() for r in reports],
    }


class MapSurface:
    """Estado del mapa principal de un visitante"""

    def __init__(self, bounds: Bounds = MEDELLIN_BOUNDS, min_zoom=MIN_ZOOM, max_zoom=MAX_ZOOM,
                 camera: Optional[Camera] = None, viewport=DEFAULT_VIEWPORT,
                 on_location_selected: Optional[Callable[[Coordinate], None]] = None):
        self.bounds = bounds
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.width, self.height = _check_viewport(*viewport)
        self.on_location_selected = on_location_selected

        self.selection_mode = False
        self.marker: Optional[Coordinate] = None
        self.user_position: Optional[Coordinate] = None
        self.style = 'dark'
        self.overlay: Optional[str] = None

        start = camera or DEFAULT_CAMERA
        self.camera = self.clamp_camera(start.longitude, start.latitude, start.zoom)

    # ---------- Cámara ----------

    def degrees_per_pixel(self, zoom=None):
        """Grados de longitud por píxel"""
        z = self.camera.zoom if zoom is None else zoom
        return 360.0 / world_size(z)

    def shift_latitude(self, latitude, dy, zoom=None):
        """Latitud que queda dy píxeles más abajo (dy negativo: más arriba)"""
        z = self.camera.zoom if zoom is None else zoom
        y = mercator_y(latitude)
        # Relativo al punto de partida: con dy = 0 la latitud sale intacta
        return latitude + latitude_from_mercator(y + dy / world_size(z)) - latitude_from_mercator(y)

    def clamp_camera(self, longitude, latitude, zoom) -> Camera:
        """Limitar la cámara para que todo el viewport quede dentro del rectángulo"""
        for value in (longitude, latitude, zoom):
            if not math.isfinite(value):
                raise ValueError('La cámara solo acepta valores finitos')

        top = mercator_y(self.bounds.north)
        bottom = mercator_y(self.bounds.south)

        zoom = min(max(zoom, self.min_zoom), self.max_zoom)
        # Si el viewport es más grande que el rectángulo, acercar hasta que quepa
        fit_zoom = max(
            math.log2(360.0 * self.width / (TILE_SIZE * self.bounds.width)),
            math.log2(self.height / (TILE_SIZE * (bottom - top))),
        )
        zoom = max(zoom, fit_zoom)

        half_w = self.width * self.degrees_per_pixel(zoom) / 2
        longitude = min(max(longitude, self.bounds.west + half_w), self.bounds.east - half_w)

        half_h = self.height / 2 / world_size(zoom)
        y = mercator_y(min(max(latitude, -85.0), 85.0))
        if y < top + half_h:
            latitude = latitude_from_mercator(top + half_h)
        elif y > bottom - half_h:
            latitude = latitude_from_mercator(bottom - half_h)
        return Camera(longitude=longitude, latitude=latitude, zoom=zoom)

    def move_camera(self, longitude, latitude, zoom=None):
        z = self.camera.zoom if zoom is None else zoom
        self.camera = self.clamp_camera(longitude, latitude, z)
        return self.camera

    def pan(self, dx, dy):
        """Arrastre en píxeles: el mapa sigue al dedo, la cámara va al revés"""
        return self.move_camera(self.camera.longitude - dx * self.degrees_per_pixel(),
                                self.shift_latitude(self.camera.latitude, -dy))

    def zoom_to(self, zoom):
        return self.move_camera(self.camera.longitude, self.camera.latitude, zoom)

    def resize(self, width, height):
        self.width, self.height = _check_viewport(width, height)
        return self.move_camera(self.camera.longitude, self.camera.latitude)

    def visible_bounds(self) -> Bounds:
        half_w = self.width * self.degrees_per_pixel() / 2
        return Bounds(
            west=self.camera.longitude - half_w,
            south=self.shift_latitude(self.camera.latitude, self.height / 2),
            east=self.camera.longitude + half_w,
            north=self.shift_latitude(self.camera.latitude, -self.height / 2),
        )

    def unproject(self, x, y) -> Coordinate:
        """Píxel del viewport -> coordenada (inversa de Web Mercator)"""
        coord = Coordinate(
            lat=self.shift_latitude(self.camera.latitude, y - self.height / 2),
            lng=self.camera.longitude + (x - self.width / 2) * self.degrees_per_pixel(),
        )
        # Absorbe el redondeo en los bordes del rectángulo
        return self.bounds.clamp(coord)

    # ---------- Interacción ----------

    def set_selection_mode(self, active):
        self.selection_mode = bool(active)
        if self.selection_mode:
            self.marker = None

    def tap(self, x, y, at: Optional[Coordinate] = None) -> Optional[Coordinate]:
        """
        Toque sobre el mapa

        Args:
            x, y: píxel del viewport
            at: coordenada que el widget ya resolvió para ese píxel; si falta
                se proyecta desde la cámara guardada

        Returns:
            Coordinate entregada al borrador, o None si el toque no selecciona nada

        Raises:
            ValueError: si `at` no es una coordenada finita
        """
        if not (0 <= x <= self.width and 0 <= y <= self.height):
            return None
        if self.overlay is not None:
            self.dismiss_overlays()
            return None
        if not self.selection_mode:
            return None

        if at is None:
            coord = self.unproject(x, y)
        else:
            if not (math.isfinite(at.lat) and math.isfinite(at.lng)):
                raise ValueError('Coordenada del toque inválida')
            coord = self.bounds.clamp(at)
        self.marker = coord
        if self.on_location_selected is not None:
            self.on_location_selected(coord)
        return coord

    def show_gps_location(self, coord: Coordinate):
        """Consumidor del canal de ubicación: pin del borrador y cámara centrada"""
        self.user_position = coord
        self.marker = coord
        self.move_camera(coord.lng, coord.lat, GPS_ZOOM)

    def show_user_position(self, coord: Coordinate):
        """Marcador "mi ubicación" de la primera carga, independiente del borrador"""
        self.user_position = coord
        self.move_camera(coord.lng, coord.lat, MY_POSITION_ZOOM)

    def toggle_style(self):
        self.style = NEXT_STYLE[self.style]
        return self.style

    def open_overlay(self, name):
        if name not in OVERLAYS:
            raise ValueError(f'Overlay desconocido: {name}')
        self.overlay = name

    def dismiss_overlays(self):
        self.overlay = None

    @property
    def pin_is_distinct(self):
        """El pin del borrador se dibuja solo si no coincide con "mi ubicación" """
        return self.marker is not None and self.marker != self.user_position

    # ---------- Serialización ----------

    def widget_config(self, reports, access_token=None):
        """Configuración que consume el widget de Mapbox en la plantilla"""
        return {
            'accessToken': access_token,
            'style': MAP_STYLES[self.style],
            'styleKey': self.style,
            'nextStyleLabel': STYLE_LABELS[NEXT_STYLE[self.style]],
            'camera': self.camera.to_dict(),
            'viewport': {'width': self.width, 'height': self.height},
            'maxBounds': self.bounds.to_lnglat_pairs(),
            'minZoom': self.min_zoom,
            'maxZoom': self.max_zoom,
            'heatmapLayer': HEATMAP_LAYER,
            'source': feature_collection(reports),
            'selectionMode': self.selection_mode,
            'marker': self.marker.to_dict() if self.pin_is_distinct else None,
            'userPosition': self.user_position.to_dict() if self.user_position else None,
        }

    def to_dict(self):
        return {
            'camera': self.camera.to_dict(),
            'viewport': [self.width, self.height],
            'selection_mode': self.selection_mode,
            'marker': self.marker.to_dict() if self.marker else None,
            'user_position': self.user_position.to_dict() if self.user_position else None,
            'style': self.style,
            'overlay': self.overlay,
        }

    @classmethod
    def from_dict(cls, data, **kwargs):
        if not data:
            return cls(**kwargs)
        camera = Camera.from_dict(data['camera']) if data.get('camera') else None
        surface = cls(camera=camera,
                      viewport=tuple(data.get('viewport', DEFAULT_VIEWPORT)), **kwargs)
        surface.selection_mode = bool(data.get('selection_mode', False))
        surface.marker = Coordinate.from_dict(data.get('marker'))
        surface.user_position = Coordinate.from_dict(data.get('user_position'))
        surface.style = data.get('style') if data.get('style') in MAP_STYLES else 'dark'
        surface.overlay = data.get('overlay') if data.get('overlay') in OVERLAYS else None
        return surface


def _check_viewport(width, height):
    if not (math.isfinite(width) and math.isfinite(height)):
        raise ValueError('El viewport debe tener tamaño finito')
    width, height = int(width), int(height)
    if width <= 0 or height <= 0:
        raise ValueError('El viewport debe tener tamaño positivo')
    return width, height
