# app/services/errors.py
"""
Errores de dominio de EcoMed

Todos llevan un mensaje legible en español que las rutas muestran tal cual,
junto al formulario o panel que disparó la acción.
"""


class EcoMedError(Exception):
    """Base de todos los errores de la aplicación"""

    default_message = 'Ocurrió un error inesperado.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self):
        return type(self).__name__


# ---------- Geolocalización ----------

class GeolocationError(EcoMedError):
    default_message = 'No se pudo obtener la ubicación.'


class GeolocationPermissionDenied(GeolocationError):
    default_message = 'Permiso de ubicación denegado.'


class GeolocationUnavailable(GeolocationError):
    default_message = 'GPS no disponible.'


class GeolocationTimeout(GeolocationError):
    default_message = 'Se agotó el tiempo para obtener la ubicación.'


# ---------- Borrador / envío ----------

class ValidationError(EcoMedError):
    default_message = 'Datos del reporte inválidos.'


class InvalidTransition(EcoMedError):
    default_message = 'Acción no permitida en este momento.'


class PhotoUploadFailed(EcoMedError):
    default_message = 'Error subiendo foto.'


class StoreWriteFailed(EcoMedError):
    default_message = 'No se pudo guardar el reporte.'


# ---------- Administración ----------

class AuthenticationFailed(EcoMedError):
    default_message = 'Credenciales incorrectas.'


class FetchFailed(EcoMedError):
    default_message = 'No se pudieron cargar los reportes.'
