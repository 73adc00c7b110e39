# app/services/storage.py
"""
Almacenamiento de fotos

Un bucket público respaldado por el sistema de archivos: cada foto se guarda
con un nombre generado (milisegundos + bits aleatorios, conservando la
extensión original) y se sirve desde una URL pública sin control de acceso.
"""
import logging
import os
import secrets
import time

from app.services.errors import PhotoUploadFailed

logger = logging.getLogger(__name__)


def generate_photo_name(original_name, now=None):
    """Nombre resistente a colisiones: '<epoch_ms>-<aleatorio>.<ext>'"""
    millis = int((time.time() if now is None else now) * 1000)
    token = secrets.token_hex(6)
    ext = os.path.splitext(original_name or '')[1].lower()
    return f'{millis}-{token}{ext}'


class PhotoStorage:
    """Bucket de fotos en disco"""

    def __init__(self, root_dir, bucket='reportes-fotos', public_base_url='/fotos'):
        self.root_dir = root_dir
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip('/')

    @property
    def bucket_dir(self):
        return os.path.join(self.root_dir, self.bucket)

    def path_for(self, name):
        # Solo nombres planos: nada de rutas relativas dentro del bucket
        if not name or os.path.basename(name) != name or name.startswith('.'):
            raise ValueError(f'Nombre de archivo inválido: {name!r}')
        return os.path.join(self.bucket_dir, name)

    def upload(self, data: bytes, original_name, content_type=None) -> str:
        """
        Guardar una foto en el bucket

        Returns:
            nombre generado del objeto

        Raises:
            PhotoUploadFailed: si no se pudo escribir
        """
        name = generate_photo_name(original_name)
        try:
            os.makedirs(self.bucket_dir, exist_ok=True)
            with open(self.path_for(name), 'xb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Error subiendo foto {original_name!r}: {e}")
            raise PhotoUploadFailed(f'Error subiendo foto: {e.strerror or e}') from e

        logger.info(f"Foto subida: {self.bucket}/{name} ({len(data)} bytes, {content_type})")
        return name

    def public_url(self, name) -> str:
        return f'{self.public_base_url}/{name}'

    def remove(self, name):
        try:
            os.remove(self.path_for(name))
        except FileNotFoundError:
            return False
        return True


def purge_staged_photos(staging_dir, max_age_seconds, now=None):
    """
    Borrar fotos temporales más viejas que max_age_seconds

    Son fotos de borradores abandonados (pestaña cerrada sin enviar ni cancelar).

    Returns:
        cantidad de archivos borrados
    """
    now = time.time() if now is None else now
    removed = 0
    try:
        entries = list(os.scandir(staging_dir))
    except FileNotFoundError:
        return 0

    for entry in entries:
        try:
            if entry.is_file() and now - entry.stat().st_mtime > max_age_seconds:
                os.remove(entry.path)
                removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"No se pudo borrar la foto temporal {entry.name}: {e}")

    if removed:
        logger.info(f"Fotos temporales purgadas: {removed}")
    return removed
