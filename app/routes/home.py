# app/routes/home.py
import logging
import os
import secrets

from flask import (Blueprint, current_app, g, jsonify, render_template, request,
                   send_from_directory)
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from app import db
from app.services.draft import DraftPhoto
from app.services.errors import (EcoMedError, FetchFailed, GeolocationError,
                                 InvalidTransition, PhotoUploadFailed,
                                 StoreWriteFailed, ValidationError)
from app.services.geo import Coordinate
from app.services.geolocation import (FIRST_LOAD_TIMEOUT_MS, BrowserPositionSource,
                                      GeolocationAdapter)
from app.services.listing import fetch_reports
from app.services.map_surface import feature_collection
from app.services.storage import PhotoStorage, purge_staged_photos
from app.services.submission import SubmissionPipeline
from app.utils.decorators import with_page_session

bp = Blueprint('home', __name__)
logger = logging.getLogger(__name__)

# Errores del usuario: 400. Subida o escritura: 502. El resto: 500
CLIENT_ERRORS = (ValidationError, InvalidTransition)
UPSTREAM_ERRORS = (PhotoUploadFailed, StoreWriteFailed)


def get_photo_storage():
    base_url = current_app.config.get('PHOTO_PUBLIC_BASE_URL') or request.url_root.rstrip('/') + '/fotos'
    return PhotoStorage(
        current_app.config['PHOTO_STORAGE_DIR'],
        bucket=current_app.config['PHOTO_BUCKET'],
        public_base_url=base_url,
    )


def _state():
    page = g.page
    return {
        'draft': page.controller.snapshot(),
        'map': page.surface.to_dict(),
    }


def _error(e: EcoMedError):
    if isinstance(e, CLIENT_ERRORS):
        status = 400
    elif isinstance(e, UPSTREAM_ERRORS):
        status = 502
    else:
        status = 500
    body = {'error': e.message, 'code': e.code}
    body.update(_state())
    return jsonify(body), status


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


@bp.route('/')
@with_page_session(parts=('notice',))
def index():
    """Mapa de calor con todos los reportes"""
    fetch_error = None
    try:
        reports = fetch_reports()
    except FetchFailed as e:
        reports = []
        fetch_error = e.message

    page = g.page
    return render_template(
        'home/index.html',
        reports=reports,
        fetch_error=fetch_error,
        map_config=page.surface.widget_config(reports, current_app.config.get('MAPBOX_TOKEN')),
        draft=page.controller.snapshot(),
        show_notice=page.should_show_notice(),
        geolocation_timeout_ms=current_app.config['GEOLOCATION_TIMEOUT_MS'],
        first_load_timeout_ms=FIRST_LOAD_TIMEOUT_MS,
    )


@bp.route('/api/reportes')
def reports_geojson():
    """Recarga completa del conjunto mostrado en el mapa"""
    try:
        reports = fetch_reports()
    except FetchFailed as e:
        return jsonify({'error': e.message, 'code': e.code}), 500
    return jsonify(feature_collection(reports))


@bp.route('/fotos/<path:name>')
def photo(name):
    """Bucket público de fotos"""
    storage = get_photo_storage()
    return send_from_directory(storage.bucket_dir, name)


# ---------- Aviso y mapa ----------

@bp.route('/api/aviso/visto', methods=['POST'])
@with_page_session(parts=('notice',))
def dismiss_notice():
    g.page.dismiss_notice()
    return jsonify({'ok': True})


@bp.route('/api/mapa/estilo', methods=['POST'])
@with_page_session(parts=('view',))
def toggle_style():
    style = g.page.surface.toggle_style()
    config = g.page.surface.widget_config([], current_app.config.get('MAPBOX_TOKEN'))
    return jsonify({'style': style, 'styleUrl': config['style'], 'nextStyleLabel': config['nextStyleLabel']})


@bp.route('/api/mapa/camara', methods=['POST'])
@with_page_session(parts=('camera',))
def move_camera():
    """Sincroniza cámara y viewport del widget; devuelve la cámara ya limitada"""
    data = _payload()
    surface = g.page.surface
    try:
        if 'width' in data and 'height' in data:
            surface.resize(float(data['width']), float(data['height']))
        if 'dx' in data or 'dy' in data:
            surface.pan(float(data.get('dx', 0)), float(data.get('dy', 0)))
        if 'longitude' in data and 'latitude' in data:
            zoom = float(data['zoom']) if 'zoom' in data else None
            surface.move_camera(float(data['longitude']), float(data['latitude']), zoom)
        elif 'zoom' in data:
            surface.zoom_to(float(data['zoom']))
    except (TypeError, ValueError, OverflowError):
        return jsonify({'error': 'Cámara inválida.', 'code': 'ValidationError'}), 400
    return jsonify({'camera': surface.camera.to_dict()})


@bp.route('/api/mapa/tap', methods=['POST'])
@with_page_session
def map_tap():
    """Toque en el mapa; el widget manda el píxel y la coordenada que ya resolvió"""
    data = _payload()
    try:
        x, y = float(data['x']), float(data['y'])
        at = Coordinate.from_dict(data) if 'lat' in data and 'lng' in data else None
        coord = g.page.surface.tap(x, y, at=at)
    except (KeyError, TypeError, ValueError):
        return jsonify({'error': 'Toque inválido.', 'code': 'ValidationError'}), 400
    except EcoMedError as e:
        return _error(e)

    body = {'location': coord.to_dict() if coord else None}
    body.update(_state())
    return jsonify(body)


@bp.route('/api/mapa/overlay', methods=['POST'])
@with_page_session(parts=('view',))
def overlay():
    name = _payload().get('name')
    surface = g.page.surface
    if name:
        try:
            surface.open_overlay(name)
        except ValueError:
            return jsonify({'error': 'Panel desconocido.', 'code': 'ValidationError'}), 400
    else:
        surface.dismiss_overlays()
    return jsonify({'overlay': surface.overlay})


@bp.route('/api/mapa/mi-ubicacion', methods=['POST'])
@with_page_session(parts=('camera', 'position'))
def my_location():
    """Marcador de "mi ubicación" en la primera carga (mejor esfuerzo)"""
    adapter = GeolocationAdapter(BrowserPositionSource(_payload()))
    try:
        coord = adapter.acquire(high_accuracy=True, timeout_ms=FIRST_LOAD_TIMEOUT_MS)
    except GeolocationError as e:
        logger.info(f"Sin posición inicial: {e.code}")
        return jsonify({'ok': False, 'code': e.code})
    g.page.surface.show_user_position(coord)
    return jsonify({'ok': True, 'camera': g.page.surface.camera.to_dict(),
                    'userPosition': coord.to_dict()})


# ---------- Borrador de reporte ----------

@bp.route('/api/reporte/abrir', methods=['POST'])
@with_page_session
def open_draft():
    try:
        g.page.controller.open()
    except EcoMedError as e:
        return _error(e)
    body = {'geolocation': {
        'enableHighAccuracy': True,
        'timeout': current_app.config['GEOLOCATION_TIMEOUT_MS'],
        'maximumAge': 0,
    }}
    body.update(_state())
    return jsonify(body)


@bp.route('/api/reporte/ubicacion', methods=['POST'])
@with_page_session
def draft_location():
    """Resultado del GPS pedido al abrir el formulario"""
    adapter = GeolocationAdapter(BrowserPositionSource(_payload()))
    try:
        g.page.controller.acquire_location(
            adapter,
            high_accuracy=True,
            timeout_ms=current_app.config['GEOLOCATION_TIMEOUT_MS'],
        )
    except EcoMedError as e:
        return _error(e)
    return jsonify(_state())


@bp.route('/api/reporte/cambiar-ubicacion', methods=['POST'])
@with_page_session
def change_location():
    try:
        g.page.controller.request_manual_selection()
    except EcoMedError as e:
        return _error(e)
    return jsonify(_state())


@bp.route('/api/reporte/restaurar', methods=['POST'])
@with_page_session
def restore_form():
    try:
        g.page.controller.restore_form()
    except EcoMedError as e:
        return _error(e)
    return jsonify(_state())


@bp.route('/api/reporte/foto', methods=['POST'])
@with_page_session
def attach_photo():
    try:
        upload = request.files.get('foto')
    except RequestEntityTooLarge:
        return _error(ValidationError('La foto no puede superar 5MB'))

    if upload is None or not upload.filename:
        return _error(ValidationError('No se recibió ninguna foto.'))
    if not (upload.mimetype or '').startswith('image/'):
        return _error(ValidationError('El archivo debe ser una imagen.'))

    filename = secure_filename(upload.filename) or 'foto'
    staging_dir = current_app.config['PHOTO_STAGING_DIR']
    purge_staged_photos(staging_dir, current_app.config['PAGE_STATE_MAX_AGE'].total_seconds())
    os.makedirs(staging_dir, exist_ok=True)
    path = os.path.join(staging_dir, secrets.token_hex(16) + os.path.splitext(filename)[1].lower())
    upload.save(path)

    photo = DraftPhoto(
        path=path,
        filename=filename,
        content_type=upload.mimetype,
        size=os.path.getsize(path),
    )
    try:
        g.page.controller.attach_photo(photo)
    except EcoMedError as e:
        photo.discard()
        return _error(e)
    return jsonify(_state())


@bp.route('/api/reporte/foto', methods=['DELETE'])
@with_page_session
def clear_photo():
    try:
        g.page.controller.clear_photo()
    except EcoMedError as e:
        return _error(e)
    return jsonify(_state())


@bp.route('/api/reporte/enviar', methods=['POST'])
@with_page_session
def submit_draft():
    controller = g.page.controller
    pipeline = SubmissionPipeline(get_photo_storage(), db.session)
    try:
        description = _payload().get('description')
        if description is not None:
            controller.set_description(description)
        report = controller.submit(pipeline)
    except EcoMedError as e:
        return _error(e)

    # Recarga completa, sin parches incrementales
    try:
        source = feature_collection(fetch_reports())
    except FetchFailed:
        source = None

    body = {
        'ok': True,
        'report': report.to_feature(),
        'refresh': g.page.needs_refresh,
        'source': source,
    }
    body.update(_state())
    return jsonify(body), 201


@bp.route('/api/reporte/cancelar', methods=['POST'])
@with_page_session
def cancel_draft():
    try:
        g.page.controller.cancel()
    except EcoMedError as e:
        return _error(e)
    return jsonify(_state())


@bp.errorhandler(RequestEntityTooLarge)
def too_large(e):
    return jsonify({'error': 'La foto no puede superar 5MB', 'code': 'ValidationError'}), 413
