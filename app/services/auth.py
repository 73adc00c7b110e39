# app/services/auth.py
import logging

from app.models import AdminUser
from app.services.errors import AuthenticationFailed

logger = logging.getLogger(__name__)


def authenticate(email, password):
    """
    Verificar credenciales de administrador

    Returns:
        AdminUser autenticado

    Raises:
        AuthenticationFailed: correo o contraseña incorrectos
    """
    email = (email or '').strip().lower()
    user = AdminUser.query.filter_by(email=email).first() if email else None
    if user is None or not user.check_password(password):
        logger.warning(f"Intento de login fallido para {email or '<vacío>'}")
        raise AuthenticationFailed()
    return user
