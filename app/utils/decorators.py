from functools import wraps
from flask import g

from app.utils.session_helpers import load_page_session, save_page_session


def with_page_session(f=None, parts=None):
    """
    Carga el estado de la página en g.page y lo guarda al terminar la vista

    Con `parts` la vista solo escribe esas partes del estado (cámara, estilo...)
    y no pisa el borrador que otra petición haya cambiado mientras tanto.
    """
    def decorator(view):
        @wraps(view)
        def decorated_function(*args, **kwargs):
            g.page = load_page_session()
            response = view(*args, **kwargs)
            save_page_session(g.page, parts)
            return response
        return decorated_function

    if f is not None:
        return decorator(f)
    return decorator
