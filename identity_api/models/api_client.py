"""API keys for partner sites calling the service without a user token."""

import hashlib
import hmac
import json
import secrets
from datetime import datetime
from identity_api import db

SCOPE_GEO_READ = 'geo:read'
SCOPE_GEO_WRITE = 'geo:write'
SCOPE_PUSH_SEND = 'push:send'
SCOPE_NOTIFY_SEND = 'notify:send'
ALL_SCOPES = (SCOPE_GEO_READ, SCOPE_GEO_WRITE, SCOPE_PUSH_SEND, SCOPE_NOTIFY_SEND)

KEY_PREFIX = 'fti_'


def _hash_key(raw_key):
    return hashlib.sha256(raw_key.encode('utf-8')).hexdigest()


class ApiClient(db.Model):
    """A registered partner application.

    Only a SHA-256 digest of the key is stored. The first 8 and last 4
    characters are kept so the admin console can show which key is which.
    """

    __tablename__ = 'api_clients'

    id = db.Column(db.Integer, primary_key=True)
    app_code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    key_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    key_prefix = db.Column(db.String(8), nullable=False)
    key_suffix = db.Column(db.String(4), nullable=False)
    scopes = db.Column(db.Text, nullable=False, default='[]')  # JSON list
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    created_by = db.Column(db.Integer, nullable=True)
    last_used_at = db.Column(db.DateTime, nullable=True)
    request_count = db.Column(db.Integer, default=0, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    @classmethod
    def create(cls, app_code, scopes, description=None, notes=None, created_by=None):
        """
        Register a client and generate its key.
        Returns (client, raw_key); the raw key is not recoverable afterwards.
        """
        raw_key = KEY_PREFIX + secrets.token_urlsafe(32)
        client = cls(
            app_code=app_code,
            description=description,
            notes=notes,
            created_by=created_by,
            key_hash=_hash_key(raw_key),
            key_prefix=raw_key[:8],
            key_suffix=raw_key[-4:],
        )
        client.set_scopes(scopes)
        db.session.add(client)
        return client, raw_key

    @classmethod
    def authenticate(cls, raw_key):
        """Return the active client owning this key, or None."""
        if not raw_key:
            return None
        digest = _hash_key(raw_key)
        client = cls.query.filter_by(key_hash=digest, is_active=True).first()
        if client and hmac.compare_digest(client.key_hash, digest):
            return client
        return None

    def set_scopes(self, scopes):
        self.scopes = json.dumps(sorted(set(scopes or [])))

    def get_scopes(self):
        try:
            return json.loads(self.scopes or '[]')
        except (json.JSONDecodeError, TypeError):
            return []

    def has_scope(self, scope):
        return scope in self.get_scopes()

    def record_use(self):
        self.last_used_at = datetime.utcnow()
        self.request_count = (self.request_count or 0) + 1

    @property
    def masked_key(self):
        return f'{self.key_prefix}****{self.key_suffix}'

    def to_dict(self, full_key=None):
        data = {
            'id': self.id,
            'appCode': self.app_code,
            'description': self.description,
            'scopes': self.get_scopes(),
            'isActive': self.is_active,
            'maskedKey': self.masked_key,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'lastUsedAt': self.last_used_at.isoformat() if self.last_used_at else None,
            'requestCount': self.request_count,
            'notes': self.notes,
        }
        if full_key:
            data['fullKey'] = full_key
        return data

    def __repr__(self):
        return f'<ApiClient {self.app_code}>'
