"""
Context processors para disponibilizar variables en todas las plantillas
"""
from flask import current_app


def inject_global_vars():
    """Inyecta variables globales en todas las plantillas"""
    return {
        'app_name': 'EcoMed',
        'max_photo_mb': current_app.config.get('MAX_PHOTO_BYTES', 5 * 1024 * 1024) // (1024 * 1024),
    }
