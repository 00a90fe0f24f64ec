"""Key/value settings edited from the admin console."""

from datetime import datetime
from identity_api import db


class SettingKeys:
    TERMS_OF_SERVICE = 'terms_of_service'
    PRIVACY_POLICY = 'privacy_policy'


class Setting(db.Model):
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False, default='')
    updated_at = db.Column(db.DateTime, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)

    @classmethod
    def get_value(cls, key):
        return cls.query.filter_by(key=key).first()

    @classmethod
    def upsert(cls, key, value, user_id=None):
        """Create or update a setting. Caller commits."""
        setting = cls.query.filter_by(key=key).first()
        if setting is None:
            setting = cls(key=key)
            db.session.add(setting)
        setting.value = value or ''
        setting.updated_at = datetime.utcnow()
        setting.updated_by = user_id
        return setting

    def __repr__(self):
        return f'<Setting {self.key}>'
