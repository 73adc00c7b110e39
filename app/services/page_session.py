# app/services/page_session.py
"""
Estado de la página principal de un visitante

Dueño único del borrador, de la superficie del mapa y de la bandera "ya vio
el aviso". Se inicializa explícitamente al comenzar la sesión, se guarda en
el servidor (tabla page_states) entre peticiones y se destruye al terminarla.
"""
import copy

from app.services.channel import LocationChannel
from app.services.draft import Draft, ReportDraftController
from app.services.map_surface import MapSurface

SESSION_KEY = 'ecomed_page'  # id de la fila page_states en la cookie de Flask

# Campos que escribe cada parte del estado; las vistas que solo tocan una
# parte la mezclan sobre lo último guardado en vez de pisar el borrador
PAGE_PARTS = {
    'notice': (('notice_seen',),),
    'camera': (('map', 'camera'), ('map', 'viewport')),
    'view': (('map', 'style'), ('map', 'overlay')),
    'position': (('map', 'user_position'),),
}


def merge_page_parts(stored, fresh, parts):
    """Copiar de `fresh` sobre `stored` solo los campos de `parts`"""
    if not stored:
        return copy.deepcopy(fresh)
    merged = copy.deepcopy(stored)
    for part in parts:
        for path in PAGE_PARTS[part]:
            source, target = fresh, merged
            for key in path[:-1]:
                source = source.get(key, {})
                target = target.setdefault(key, {})
            if path[-1] in source:
                target[path[-1]] = copy.deepcopy(source[path[-1]])
    return merged


class PageSession:

    def __init__(self, draft=None, surface=None, notice_seen=False, max_photo_bytes=None):
        self.notice_seen = notice_seen
        self.needs_refresh = False
        self.channel = LocationChannel()
        self.surface = surface or MapSurface()

        kwargs = {}
        if max_photo_bytes is not None:
            kwargs['max_photo_bytes'] = max_photo_bytes
        self.controller = ReportDraftController(
            draft=draft,
            channel=self.channel,
            on_selection_mode=self.surface.set_selection_mode,
            on_refresh=self._request_refresh,
            **kwargs
        )

        # Cableado explícito entre formulario y mapa
        self.channel.subscribe(self.surface.show_gps_location)
        self.surface.on_location_selected = self.controller.select_location
        self.surface.selection_mode = self.controller.selection_mode

    # ---------- Ciclo de vida ----------

    @classmethod
    def start(cls, **kwargs):
        return cls(**kwargs)

    def end(self):
        """Descarta el borrador (y su foto temporal) y suelta el canal"""
        if self.controller.draft.photo is not None:
            self.controller.draft.photo.discard()
        self.channel.unsubscribe()
        self.surface.on_location_selected = None

    # ---------- Aviso de app en desarrollo ----------

    def should_show_notice(self):
        """True solo la primera vez en la sesión"""
        if self.notice_seen:
            return False
        self.notice_seen = True
        return True

    def dismiss_notice(self):
        self.notice_seen = True

    def _request_refresh(self):
        self.needs_refresh = True

    # ---------- Serialización ----------

    def to_dict(self):
        return {
            'notice_seen': self.notice_seen,
            'draft': self.controller.draft.to_dict(),
            'map': self.surface.to_dict(),
        }

    @classmethod
    def from_dict(cls, data, **kwargs):
        if not data:
            return cls.start(**kwargs)
        return cls(
            draft=Draft.from_dict(data.get('draft')),
            surface=MapSurface.from_dict(data.get('map')),
            notice_seen=bool(data.get('notice_seen', False)),
            **kwargs
        )
