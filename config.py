import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

# Directorio base del proyecto
basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-key-change-in-production'

    # Base de datos - usar ruta absoluta
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'ecomed.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Mapa
    MAPBOX_TOKEN = os.environ.get('MAPBOX_TOKEN')
    GEOLOCATION_TIMEOUT_MS = int(os.environ.get('GEOLOCATION_TIMEOUT_MS', '10000'))

    # Fotos
    PHOTO_BUCKET = os.environ.get('PHOTO_BUCKET', 'reportes-fotos')
    PHOTO_STORAGE_DIR = os.environ.get('PHOTO_STORAGE_DIR') or os.path.join(basedir, 'instance', 'storage')
    PHOTO_STAGING_DIR = os.environ.get('PHOTO_STAGING_DIR') or os.path.join(basedir, 'instance', 'staging')
    PHOTO_PUBLIC_BASE_URL = os.environ.get('PHOTO_PUBLIC_BASE_URL')  # None = ruta /fotos/ de la app
    MAX_PHOTO_BYTES = 5 * 1024 * 1024
    MAX_CONTENT_LENGTH = 6 * 1024 * 1024  # margen para el multipart

    # Estado de página y fotos temporales sin uso se purgan pasado este tiempo
    PAGE_STATE_MAX_AGE = timedelta(hours=int(os.environ.get('PAGE_STATE_MAX_AGE_HOURS', '24')))

    # Logs
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(basedir, 'logs')
