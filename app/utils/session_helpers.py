import logging
from datetime import datetime

from flask import current_app, g, session

from app import db
from app.models import PageState
from app.services.page_session import SESSION_KEY, PageSession, merge_page_parts

logger = logging.getLogger(__name__)


def _current_state():
    state_id = session.get(SESSION_KEY)
    state = db.session.get(PageState, state_id) if state_id else None
    if state is None:
        # Visitante nuevo (o estado ya purgado): buen momento para limpiar
        purge_stale_pages(current_app.config['PAGE_STATE_MAX_AGE'])
        state = PageState()
        db.session.add(state)
        db.session.flush()
        session[SESSION_KEY] = state.id
    return state


def load_page_session():
    """PageSession del visitante; la crea (start) si la sesión es nueva"""
    state = _current_state()
    g.page_state = state
    return PageSession.from_dict(
        state.data,
        max_photo_bytes=current_app.config['MAX_PHOTO_BYTES'],
    )


def save_page_session(page, parts=None):
    """
    Guardar el estado de la página

    Args:
        page: PageSession de la petición
        parts: si se indica, solo esos campos (ver PAGE_PARTS) se escriben
            sobre lo último guardado por otras peticiones
    """
    state = g.page_state
    data = page.to_dict()
    if parts is not None:
        db.session.refresh(state)
        data = merge_page_parts(state.data, data, parts)
    state.data = data
    db.session.commit()


def end_page_session():
    """Teardown explícito al cerrar la sesión del navegador"""
    state_id = session.pop(SESSION_KEY, None)
    state = db.session.get(PageState, state_id) if state_id else None
    if state is not None:
        PageSession.from_dict(state.data).end()
        db.session.delete(state)
        db.session.commit()


def purge_stale_pages(max_age, now=None):
    """Descartar estados sin uso desde hace más de max_age, con sus fotos temporales"""
    cutoff = (now or datetime.utcnow()) - max_age
    stale = PageState.older_than(cutoff).all()
    for state in stale:
        PageSession.from_dict(state.data).end()
        db.session.delete(state)
    if stale:
        logger.info(f"Estados de página purgados: {len(stale)}")
    return len(stale)
