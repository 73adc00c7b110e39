from app import db, login_manager
from flask_login import UserMixin
from datetime import datetime
import bcrypt


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(AdminUser, int(user_id))


class AdminUser(UserMixin, db.Model):
    __tablename__ = 'admin_users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(128))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            # Hash corrupto o en otro formato
            return False

    def __repr__(self):
        return f'<AdminUser {self.email}>'
