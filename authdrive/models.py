from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    # Google account subject; NULL for local signups
    google_id = db.Column(db.String(255), unique=True, index=True)
    email = db.Column(db.String(255), index=True)
    # NULL for users created through Google sign-in
    password_hash = db.Column(db.String(255))
    username = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def has_password(self):
        return self.password_hash is not None

    @property
    def provider(self):
        return 'google' if self.google_id else 'local'

    def __repr__(self):
        return f'<User {self.id} {self.email}>'
