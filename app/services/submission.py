# app/services/submission.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.models import Report
from app.services.errors import PhotoUploadFailed, StoreWriteFailed, ValidationError

logger = logging.getLogger(__name__)


class SubmissionPipeline:
    """Valida, sube la foto (si hay) y escribe el reporte, en ese orden"""

    def __init__(self, storage, session):
        self.storage = storage
        self.session = session

    def submit(self, draft) -> Report:
        """
        Persistir un borrador

        Returns:
            Report creado

        Raises:
            ValidationError: falta descripción o ubicación
            PhotoUploadFailed: la foto no se pudo subir; no se escribe nada
            StoreWriteFailed: el registro no se pudo guardar
        """
        # 1. Validación (el controlador ya lo garantiza)
        description = (draft.description or '').strip()
        if not description:
            raise ValidationError('La descripción es obligatoria.')
        if draft.location is None:
            raise ValidationError('No hay ubicación. Usa el botón para marcarla en el mapa.')

        # 2. Foto
        photo_name = None
        photo_url = None
        if draft.photo is not None:
            try:
                data = draft.photo.read()
            except OSError as e:
                raise PhotoUploadFailed('Error subiendo foto: el archivo ya no está disponible.') from e
            photo_name = self.storage.upload(data, draft.photo.filename, draft.photo.content_type)
            photo_url = self.storage.public_url(photo_name)

        # 3. Registro
        lat, lng = draft.location.lat, draft.location.lng
        report = Report(
            description=description,
            lat=lat,
            lng=lng,
            location=Report.point_wkt(lat, lng),
            photo_url=photo_url,
        )
        try:
            self.session.add(report)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error guardando reporte: {e}")
            if photo_name is not None:
                try:
                    self.storage.remove(photo_name)
                except OSError as cleanup_error:
                    logger.error(f"No se pudo borrar la foto huérfana {photo_name}: {cleanup_error}")
            raise StoreWriteFailed() from e

        logger.info(f"Reporte {report.id} creado en ({lat}, {lng}) foto={'sí' if photo_url else 'no'}")
        return report
