# app/__init__.py
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_cors import CORS

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(app):
    """Configura el logging del paquete (archivo rotativo fuera de los tests)"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    package_logger = logging.getLogger('app')
    package_logger.setLevel(level)

    if app.config.get('TESTING'):
        return

    logging.basicConfig(format=LOG_FORMAT, level=level)

    log_dir = app.config.get('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)

    # create_app puede llamarse varias veces en el mismo proceso
    if any(isinstance(h, RotatingFileHandler) for h in package_logger.handlers):
        return

    handler = RotatingFileHandler(
        os.path.join(log_dir, 'ecomed.log'),
        maxBytes=1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)


def create_app(config_object='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Inicializar extensiones
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    CORS(app)

    configure_logging(app)

    # Configurar login
    login_manager.login_view = 'admin.login'
    login_manager.login_message = 'Inicia sesión para acceder al panel.'

    # Importar modelos (registra el user_loader)
    from app.models import user  # noqa: F401

    # Registrar blueprints
    from app.routes import home, admin
    app.register_blueprint(home.bp)
    app.register_blueprint(admin.bp)

    from app.utils.context_processor import inject_global_vars
    from app.utils.filters import register_filters
    app.context_processor(inject_global_vars)
    register_filters(app)

    # Crear directorios necesarios
    os.makedirs(app.instance_path, exist_ok=True)
    os.makedirs(app.config['PHOTO_STORAGE_DIR'], exist_ok=True)
    os.makedirs(app.config['PHOTO_STAGING_DIR'], exist_ok=True)

    return app
