# app/services/listing.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.models import Report
from app.services.errors import FetchFailed

logger = logging.getLogger(__name__)


def fetch_reports():
    """Todos los reportes, del más reciente al más antiguo (sin paginación)"""
    try:
        return Report.newest_first().all()
    except SQLAlchemyError as e:
        logger.error(f"Error cargando reportes: {e}")
        raise FetchFailed() from e
