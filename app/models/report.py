# app/models/report.py
import uuid
from datetime import datetime

from app import db


def _new_report_id():
    return uuid.uuid4().hex


class Report(db.Model):
    __tablename__ = 'reports'

    id = db.Column(db.String(32), primary_key=True, default=_new_report_id)
    description = db.Column(db.Text, nullable=False)
    lat = db.Column(db.Float, nullable=False)
    lng = db.Column(db.Float, nullable=False)
    location = db.Column(db.String(64), nullable=False)  # WKT: POINT(lng lat)
    photo_url = db.Column(db.String(500))  # None cuando no se adjuntó foto
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    @staticmethod
    def point_wkt(lat, lng):
        return f'POINT({lng} {lat})'

    @classmethod
    def newest_first(cls):
        return cls.query.order_by(cls.created_at.desc())

    def to_feature(self):
        """Feature GeoJSON para la capa de calor"""
        return {
            'type': 'Feature',
            'geometry': {'type': 'Point', 'coordinates': [self.lng, self.lat]},
            'properties': {
                'id': self.id,
                'descripcion': self.description,
                'created_at': self.created_at.isoformat() if self.created_at else None,
                'foto_url': self.photo_url,
            },
        }

    def __repr__(self):
        return f'<Report {self.id} ({self.lat}, {self.lng})>'
