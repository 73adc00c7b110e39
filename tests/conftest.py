# tests/conftest.py
"""
Fixtures compartidos para todos los tests de EcoMed
"""
import os
import pytest
from datetime import datetime, timedelta

# Forzar variables de entorno ANTES de importar la app
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing'

from config import Config
from app import create_app, db as _db
from app.models import AdminUser, Report


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SECRET_KEY = 'test-secret-key-for-testing'
    SERVER_NAME = 'localhost'
    MAPBOX_TOKEN = 'pk.test'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Crea la aplicación Flask para tests"""
    storage_dir = tmp_path / 'storage'
    staging_dir = tmp_path / 'staging'

    class _Config(TestConfig):
        PHOTO_STORAGE_DIR = str(storage_dir)
        PHOTO_STAGING_DIR = str(staging_dir)
        LOG_DIR = str(tmp_path / 'logs')

    return create_app(_Config)


@pytest.fixture(scope='function')
def db(app):
    """Crea y limpia la base de datos para cada test"""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app, db):
    """Cliente HTTP de test"""
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture
def app_context(app, db):
    """Contexto de la aplicación"""
    with app.app_context():
        yield app


@pytest.fixture
def admin_user(db):
    """Crea un administrador de test"""
    user = AdminUser(email='admin@test.com')
    user.set_password('AdminPass123')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def report(db):
    """Crea un reporte de test sin foto"""
    r = Report(
        description='Bolsas frente al parque',
        lat=6.25,
        lng=-75.57,
        location=Report.point_wkt(6.25, -75.57),
    )
    db.session.add(r)
    db.session.commit()
    return r


@pytest.fixture
def reports(db):
    """Tres reportes con fechas distintas (el más antiguo primero en la inserción)"""
    now = datetime.utcnow()
    items = []
    for i, (desc, photo) in enumerate([
        ('Escombros en la quebrada', None),
        ('Colchones abandonados', 'http://localhost/fotos/1-a.jpg'),
        ('Basura junto al paradero', None),
    ]):
        r = Report(
            description=desc,
            lat=6.2 + i * 0.01,
            lng=-75.6 + i * 0.01,
            location=Report.point_wkt(6.2 + i * 0.01, -75.6 + i * 0.01),
            photo_url=photo,
            created_at=now - timedelta(days=3 - i),
        )
        db.session.add(r)
        items.append(r)
    db.session.commit()
    return items


def login(client, email, password):
    """Helper para hacer login en los tests"""
    return client.post('/admin/login', data={
        'email': email,
        'password': password,
    }, follow_redirects=True)


def logout(client):
    """Helper para hacer logout"""
    return client.get('/admin/logout', follow_redirects=True)
