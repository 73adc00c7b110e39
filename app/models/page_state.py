# app/models/page_state.py
import json
import secrets
from datetime import datetime

from app import db


def _new_state_id():
    return secrets.token_hex(16)


class PageState(db.Model):
    """Estado de la página principal de un visitante; la cookie solo lleva el id"""
    __tablename__ = 'page_states'

    id = db.Column(db.String(32), primary_key=True, default=_new_state_id)
    data_json = db.Column(db.Text, nullable=False, default='{}')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    @property
    def data(self):
        try:
            return json.loads(self.data_json or '{}')
        except (json.JSONDecodeError, TypeError):
            return {}

    @data.setter
    def data(self, value):
        self.data_json = json.dumps(value)
        self.updated_at = datetime.utcnow()

    @classmethod
    def older_than(cls, cutoff):
        return cls.query.filter(cls.updated_at < cutoff)

    def __repr__(self):
        return f'<PageState {self.id}>'
