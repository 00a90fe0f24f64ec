"""User model for authentication and site membership."""

from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from identity_api import db

ADMIN_ROLE = 'SU'


class User(db.Model):
    """An identity shared by every site.

    A user signs in with an email + password, a phone number + password,
    or a phone number + OTP. Either email or phone may be missing, but not
    both.
    """

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    phone_number = db.Column(db.String(20), unique=True, nullable=True, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    system_role = db.Column(db.String(20), nullable=True)  # 'SU' for super users
    is_email_verified = db.Column(db.Boolean, default=False, nullable=False)
    is_phone_verified = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=True)
    last_login_at = db.Column(db.DateTime, nullable=True)

    sites = db.relationship('UserSite', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    def set_password(self, password):
        """Hash and set the user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if the provided password matches the hash."""
        if not self.password_hash or not isinstance(password, str):
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.system_role == ADMIN_ROLE

    def active_site_keys(self):
        """Keys of the sites this user is an active member of."""
        return [membership.site_key for membership in self.sites.filter_by(is_active=True).all()]

    def record_login(self):
        self.last_login_at = datetime.utcnow()

    def to_dict(self):
        """Convert user to the JSON shape the front-ends expect."""
        return {
            'id': self.id,
            'email': self.email,
            'phoneNumber': self.phone_number,
            'systemRole': self.system_role,
            'isEmailVerified': self.is_email_verified,
            'isPhoneVerified': self.is_phone_verified,
            'isActive': self.is_active,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'lastLoginAt': self.last_login_at.isoformat() if self.last_login_at else None,
        }

    def to_admin_dict(self):
        data = self.to_dict()
        data['updatedAt'] = self.updated_at.isoformat() if self.updated_at else None
        return data

    def __repr__(self):
        return f'<User {self.id} {self.email or self.phone_number}>'
