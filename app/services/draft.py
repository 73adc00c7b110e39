# app/services/draft.py
"""
Controlador del borrador de reporte

Máquina de estados del reporte aún no enviado:

    idle -> acquiring_location -> location_ready | awaiting_manual_selection
         -> submitting -> idle (éxito) | estado anterior (fallo)

Cancelar vuelve a idle desde cualquier estado salvo submitting.
"""
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.services.errors import (
    EcoMedError,
    GeolocationError,
    InvalidTransition,
    ValidationError,
)
from app.services.geo import Coordinate
from app.services.geolocation import DEFAULT_TIMEOUT_MS

logger = logging.getLogger(__name__)

MAX_PHOTO_BYTES = 5 * 1024 * 1024


class DraftStatus(str, Enum):
    IDLE = 'idle'
    ACQUIRING_LOCATION = 'acquiring_location'
    LOCATION_READY = 'location_ready'
    AWAITING_MANUAL_SELECTION = 'awaiting_manual_selection'
    SUBMITTING = 'submitting'


# Estados en los que el formulario está abierto y se puede editar
EDITABLE_STATES = (
    DraftStatus.ACQUIRING_LOCATION,
    DraftStatus.LOCATION_READY,
    DraftStatus.AWAITING_MANUAL_SELECTION,
)


@dataclass
class DraftPhoto:
    """Foto elegida por el usuario, guardada temporalmente en disco"""
    path: str
    filename: str
    content_type: str
    size: int

    def read(self) -> bytes:
        with open(self.path, 'rb') as f:
            return f.read()

    def discard(self):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass

    def to_dict(self):
        return {
            'path': self.path,
            'filename': self.filename,
            'content_type': self.content_type,
            'size': self.size,
        }

    @classmethod
    def from_dict(cls, data):
        if not data:
            return None
        return cls(**data)


@dataclass
class Draft:
    description: str = ''
    photo: Optional[DraftPhoto] = None
    location: Optional[Coordinate] = None
    status: DraftStatus = DraftStatus.IDLE
    error: Optional[str] = None
    minimized: bool = False

    def to_dict(self):
        return {
            'description': self.description,
            'photo': self.photo.to_dict() if self.photo else None,
            'location': self.location.to_dict() if self.location else None,
            'status': self.status.value,
            'error': self.error,
            'minimized': self.minimized,
        }

    @classmethod
    def from_dict(cls, data):
        if not data:
            return cls()
        return cls(
            description=data.get('description', ''),
            photo=DraftPhoto.from_dict(data.get('photo')),
            location=Coordinate.from_dict(data.get('location')),
            status=DraftStatus(data.get('status', DraftStatus.IDLE.value)),
            error=data.get('error'),
            minimized=bool(data.get('minimized', False)),
        )


class ReportDraftController:
    """Orquesta la adquisición de ubicación y el envío de un reporte"""

    def __init__(self, draft=None, channel=None, on_selection_mode=None,
                 on_refresh=None, max_photo_bytes=MAX_PHOTO_BYTES):
        self.draft = draft or Draft()
        self.channel = channel
        self.on_selection_mode = on_selection_mode
        self.on_refresh = on_refresh
        self.max_photo_bytes = max_photo_bytes

    # ---------- Consultas ----------

    @property
    def status(self) -> DraftStatus:
        return self.draft.status

    @property
    def selection_mode(self) -> bool:
        """El mapa acepta toques solo mientras se espera la selección con el formulario minimizado"""
        return self.draft.status == DraftStatus.AWAITING_MANUAL_SELECTION and self.draft.minimized

    def snapshot(self):
        d = self.draft
        return {
            'status': d.status.value,
            'description': d.description,
            'location': d.location.to_dict() if d.location else None,
            'photo': {'filename': d.photo.filename, 'size': d.photo.size} if d.photo else None,
            'error': d.error,
            'minimized': d.minimized,
            'selection_mode': self.selection_mode,
        }

    # ---------- Transiciones ----------

    def open(self):
        """idle -> acquiring_location (el usuario abre el formulario)"""
        self._require(DraftStatus.IDLE)
        self.draft.status = DraftStatus.ACQUIRING_LOCATION
        self.draft.error = None
        self.draft.minimized = False

    def acquire_location(self, adapter, high_accuracy=True, timeout_ms=DEFAULT_TIMEOUT_MS):
        """
        Pedir la posición del dispositivo

        Un fallo del GPS no es un error: el formulario se minimiza y el mapa
        pasa a modo selección.

        Returns:
            Coordinate obtenida, o None si se pasó a selección manual
        """
        self._require(DraftStatus.ACQUIRING_LOCATION)
        try:
            coord = adapter.acquire(high_accuracy=high_accuracy, timeout_ms=timeout_ms)
        except GeolocationError as e:
            logger.info(f"Sin GPS ({e.code}), se pasa a selección manual")
            self._enter_manual_selection()
            return None

        self.draft.location = coord
        self.draft.status = DraftStatus.LOCATION_READY
        self.draft.minimized = False
        if self.channel is not None:
            self.channel.publish(coord)
        return coord

    def select_location(self, coord: Coordinate):
        """awaiting_manual_selection -> location_ready (toque en el mapa)"""
        self._require(DraftStatus.AWAITING_MANUAL_SELECTION)
        self.draft.location = coord
        self.draft.status = DraftStatus.LOCATION_READY
        self.draft.error = None
        self.draft.minimized = False
        self._notify_selection_mode(False)

    def request_manual_selection(self):
        """Botón "Cambiar" / "Marcar en el mapa" """
        self._require(DraftStatus.LOCATION_READY, DraftStatus.AWAITING_MANUAL_SELECTION)
        self._enter_manual_selection()

    def restore_form(self):
        """Cerrar la píldora de selección sin elegir punto"""
        self._require(DraftStatus.AWAITING_MANUAL_SELECTION)
        self.draft.minimized = False
        if self.draft.location is not None:
            self.draft.status = DraftStatus.LOCATION_READY
        self._notify_selection_mode(False)

    def set_description(self, text):
        self._require(*EDITABLE_STATES)
        self.draft.description = text or ''

    def attach_photo(self, photo: DraftPhoto):
        """Adjuntar foto; las de más de 5MB se rechazan aquí, antes de enviar"""
        self._require(*EDITABLE_STATES)
        if photo.size > self.max_photo_bytes:
            photo.discard()
            raise ValidationError('La foto no puede superar 5MB')
        if self.draft.photo is not None:
            self.draft.photo.discard()
        self.draft.photo = photo
        self.draft.error = None

    def clear_photo(self):
        self._require(*EDITABLE_STATES)
        if self.draft.photo is not None:
            self.draft.photo.discard()
        self.draft.photo = None

    def validate(self):
        if not self.draft.description.strip():
            raise ValidationError('La descripción es obligatoria.')
        if self.draft.location is None:
            raise ValidationError('No hay ubicación. Usa el botón para marcarla en el mapa.')

    def submit(self, pipeline):
        """
        Enviar el borrador

        Returns:
            Report creado

        Raises:
            ValidationError: falta descripción o ubicación (sin transición)
            PhotoUploadFailed / StoreWriteFailed: el borrador vuelve a su estado anterior
        """
        if self.draft.status == DraftStatus.SUBMITTING:
            raise InvalidTransition('El reporte ya se está enviando.')
        self._require(DraftStatus.LOCATION_READY, DraftStatus.AWAITING_MANUAL_SELECTION)

        try:
            self.validate()
        except ValidationError as e:
            self.draft.error = e.message
            raise

        previous = self.draft.status
        self.draft.status = DraftStatus.SUBMITTING
        self.draft.error = None
        try:
            report = pipeline.submit(self.draft)
        except EcoMedError as e:
            self.draft.status = previous
            self.draft.error = e.message
            raise

        self._reset()
        if self.on_refresh is not None:
            self.on_refresh()
        return report

    def cancel(self):
        """Abandonar el borrador desde cualquier estado salvo submitting"""
        if self.draft.status == DraftStatus.SUBMITTING:
            raise InvalidTransition('No se puede cancelar mientras se envía el reporte.')
        self._reset()

    # ---------- Internos ----------

    def _enter_manual_selection(self):
        self.draft.status = DraftStatus.AWAITING_MANUAL_SELECTION
        self.draft.minimized = True
        self._notify_selection_mode(True)

    def _reset(self):
        if self.draft.photo is not None:
            self.draft.photo.discard()
        self.draft = Draft()
        self._notify_selection_mode(False)

    def _notify_selection_mode(self, active):
        if self.on_selection_mode is not None:
            self.on_selection_mode(active)

    def _require(self, *allowed):
        if self.draft.status not in allowed:
            raise InvalidTransition(
                f"Acción no permitida en el estado '{self.draft.status.value}'."
            )
