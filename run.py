from app import create_app, db
import logging
import os

app = create_app()
logger = logging.getLogger(__name__)

@app.shell_context_processor
def make_shell_context():
    # Importar modelos aquí para evitar importación circular
    from app.models import Report, AdminUser

    return {'db': db, 'Report': Report, 'AdminUser': AdminUser}

if __name__ == '__main__':
    with app.app_context():
        logger.info(f"Base de datos: {app.config['SQLALCHEMY_DATABASE_URI']}")

        # Crear tablas
        db.create_all()

    debug = os.environ.get('FLASK_DEBUG', 'False').lower() in ['true', '1', 'on']
    logger.info(f"EcoMed corriendo en http://localhost:5000 (debug={debug})")
    app.run(debug=debug, host='0.0.0.0', port=5000)
