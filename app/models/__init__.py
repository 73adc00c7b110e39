# Importar todos los modelos
from .report import Report
from .user import AdminUser
from .page_state import PageState

__all__ = ['Report', 'AdminUser', 'PageState']
