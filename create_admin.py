"""
Script para crear (o restablecer) un usuario administrador
Ejecutar: python create_admin.py correo@dominio.com contraseña
"""
import sys

from app import create_app, db
from app.models import AdminUser


def create_admin(email, password):
    app = create_app()

    with app.app_context():
        db.create_all()
        email = email.strip().lower()

        # Verificar si el admin ya existe
        admin = AdminUser.query.filter_by(email=email).first()

        if admin:
            print(f"⚠️  El admin {email} ya existe, se restablece la contraseña")
        else:
            admin = AdminUser(email=email)
            db.session.add(admin)

        admin.set_password(password)
        db.session.commit()

        print(f"✅ Admin listo: {email}")
        print("🚀 Ya puedes entrar en /admin/login")


if __name__ == '__main__':
    if len(sys.argv) != 3:
        print(__doc__.strip())
        sys.exit(1)
    create_admin(sys.argv[1], sys.argv[2])
